"""
Transactional email via the Resend API using RESEND_API_KEY.
Sends are best effort: failures are logged and reported as False, never raised.
"""
import logging
from html import escape
from typing import Optional

import httpx

from estateflow.core.config import Settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
INVITATION_EXPIRES_DAYS = 7


class EmailService:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, to_email: str, subject: str, html_content: str) -> bool:
        """
        Send a single transactional email.
        Returns True if sent successfully, False otherwise (e.g. RESEND_API_KEY not set).
        """
        api_key = (self.settings.RESEND_API_KEY or "").strip()
        if not api_key:
            logger.warning("[EMAIL] RESEND_API_KEY not configured, skipping email to %s", to_email)
            return False

        payload = {
            "from": self.settings.EMAIL_FROM,
            "to": [to_email.strip().lower()],
            "subject": subject,
            "html": html_content,
        }
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            resp = httpx.post(RESEND_API_URL, headers=headers, json=payload, timeout=15.0)
        except httpx.HTTPError as e:
            logger.error("[EMAIL] Failed to send email to %s: %s", to_email, e)
            return False
        if resp.status_code not in (200, 201):
            logger.error("[EMAIL] Resend returned %s for %s: %s", resp.status_code, to_email, resp.text[:200])
            return False
        return True

    def _frontend(self, path: str) -> str:
        return f"{self.settings.FRONTEND_URL.rstrip('/')}{path}"

    def send_magic_link(self, to_email: str, token: str) -> bool:
        link = self._frontend(f"/auth/callback?token={token}")
        html = f"""
        <p>Click the link below to sign in to EstateFlow.</p>
        <p><a href="{link}">{link}</a></p>
        <p>This link expires in {self.settings.MAGIC_LINK_EXPIRE_MINUTES} minutes and can only be used once.</p>
        <p>If you didn't request this email, you can ignore it.</p>
        """
        return self.send(to_email, "Your EstateFlow sign-in link", html)

    def send_new_deal(self, to_email: str, client_name: str, agent_name: str, access_token: str,
                      welcome_message: Optional[str] = None) -> bool:
        link = self._frontend(f"/deal/{access_token}")
        message = f"<p>{escape(welcome_message)}</p>" if welcome_message else ""
        html = f"""
        <p>Hello {escape(client_name)},</p>
        <p>{escape(agent_name)} has opened a space to follow your transaction.</p>
        {message}
        <p><a href="{link}">Follow your transaction</a></p>
        """
        return self.send(to_email, "Your transaction is now online", html)

    def send_step_update(self, to_email: str, client_name: str, step_title: str, step_status: str,
                         access_token: str) -> bool:
        link = self._frontend(f"/deal/{access_token}")
        html = f"""
        <p>Hello {escape(client_name)},</p>
        <p>The step <strong>{escape(step_title)}</strong> is now <strong>{escape(step_status)}</strong>.</p>
        <p><a href="{link}">See your timeline</a></p>
        """
        return self.send(to_email, f"Update: {step_title}", html)

    def send_new_document(self, to_email: str, client_name: str, filename: str, access_token: str) -> bool:
        link = self._frontend(f"/deal/{access_token}")
        html = f"""
        <p>Hello {escape(client_name)},</p>
        <p>A new document is available: <strong>{escape(filename)}</strong>.</p>
        <p><a href="{link}">Open your documents</a></p>
        """
        return self.send(to_email, "New document available", html)

    def send_invitation(self, to_email: str, org_name: str, role: str, token: str,
                        inviter_name: Optional[str] = None) -> bool:
        link = self._frontend(f"/invite/{token}")
        inviter = escape(inviter_name) if inviter_name else "A team admin"
        html = f"""
        <p>{inviter} has invited you to join <strong>{escape(org_name)}</strong> on EstateFlow as <strong>{escape(role)}</strong>.</p>
        <p>This link expires in {INVITATION_EXPIRES_DAYS} days.</p>
        <p><a href="{link}">{link}</a></p>
        <p>If you didn't expect this email, you can ignore it.</p>
        """
        return self.send(to_email, f"You've been invited to join {org_name} on EstateFlow", html)

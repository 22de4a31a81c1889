"""
Yousign v3 client: one PDF, one signer, signature field on page 1.
"""
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from estateflow.core.config import Settings

logger = logging.getLogger(__name__)


class SignatureProviderError(Exception):
    pass


@dataclass
class SignatureRequestResult:
    signature_request_id: str
    signature_link: str
    status: str


class YousignClient:
    def __init__(self, settings: Settings):
        self.api_url = settings.YOUSIGN_API_URL.rstrip("/")
        self.api_key = settings.YOUSIGN_API_KEY

    def _client(self) -> httpx.Client:
        if not self.api_key:
            raise SignatureProviderError("YOUSIGN_API_KEY not configured")
        return httpx.Client(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            timeout=30.0,
        )

    def create_signature_request(self, file_path: str, signer_email: str, signer_name: str,
                                 document_name: str) -> SignatureRequestResult:
        name_parts = signer_name.split(" ", 1)
        first_name = name_parts[0] or signer_name
        last_name = name_parts[1] if len(name_parts) > 1 else ""

        try:
            with self._client() as client:
                created = client.post("/signature_requests", json={
                    "name": f"Signature: {document_name}",
                    "delivery_mode": "email",
                    "timezone": "Europe/Paris",
                })
                created.raise_for_status()
                request_id = created.json()["id"]

                path = Path(file_path)
                with path.open("rb") as fh:
                    uploaded = client.post(
                        f"/signature_requests/{request_id}/documents",
                        files={"file": (path.name, fh, "application/pdf")},
                        data={"nature": "signable_document"},
                    )
                uploaded.raise_for_status()
                document_id = uploaded.json()["id"]

                signer = client.post(f"/signature_requests/{request_id}/signers", json={
                    "info": {
                        "first_name": first_name,
                        "last_name": last_name,
                        "email": signer_email,
                        "locale": "fr",
                    },
                    "signature_level": "electronic_signature",
                    "signature_authentication_mode": "no_otp",
                    "fields": [{
                        "type": "signature",
                        "document_id": document_id,
                        "page": 1,
                        "x": 100,
                        "y": 700,
                        "width": 200,
                        "height": 50,
                    }],
                })
                signer.raise_for_status()
                signature_link = signer.json().get("signature_link") or ""

                activated = client.post(f"/signature_requests/{request_id}/activate")
                activated.raise_for_status()
        except (httpx.HTTPError, OSError, KeyError, ValueError) as e:
            raise SignatureProviderError(str(e)) from e

        logger.info("[SIGNATURE] Created signature request %s", request_id)
        return SignatureRequestResult(request_id, signature_link, "ongoing")

    def get_status(self, signature_request_id: str) -> str:
        try:
            with self._client() as client:
                resp = client.get(f"/signature_requests/{signature_request_id}")
                resp.raise_for_status()
                return resp.json()["status"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise SignatureProviderError(str(e)) from e

    def download_signed_document(self, signature_request_id: str) -> bytes:
        try:
            with self._client() as client:
                resp = client.get(f"/signature_requests/{signature_request_id}/documents/download")
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as e:
            raise SignatureProviderError(str(e)) from e

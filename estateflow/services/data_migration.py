"""
One-time data migrations run at startup, before any request is served.

Schema changes live in alembic; this module moves data. Each migration
commits its rows and its ledger entry in a single transaction, so a crash
leaves no ledger entry and the migration is simply retried on next boot.
"""
import logging
import uuid
from typing import Callable, List, Tuple

from sqlalchemy.orm import Session

from estateflow.models.agent import Agent
from estateflow.models.data_migration import AppliedDataMigration
from estateflow.models.deal import Deal
from estateflow.models.organization_member import OrganizationMember
from estateflow.models.timeline_template import TimelineTemplate
from estateflow.services.tenancy import provision_personal_organization

logger = logging.getLogger(__name__)


def backfill_agent_organizations(db: Session) -> int:
    """
    Give every pre-organization agent their own organization, copy their
    brand and billing fields onto it, make them its Admin and move their
    deals under it. Agents that already belong to an organization are
    left alone, which keeps a retried run from duplicating anything.
    """
    member_ids = {row[0] for row in db.query(OrganizationMember.agent_id).distinct().all()}
    migrated = 0
    for agent in db.query(Agent).order_by(Agent.created_at.asc()).all():
        if agent.id in member_ids:
            continue
        membership = provision_personal_organization(db, agent, copy_billing=True)
        db.query(Deal).filter(Deal.agent_id == agent.id).update(
            {
                Deal.organization_id: membership.organization_id,
                Deal.assigned_to_agent_id: agent.id,
                Deal.created_by_agent_id: agent.id,
            },
            synchronize_session=False,
        )
        migrated += 1
    return migrated


DEFAULT_TEMPLATES = [
    (
        uuid.UUID("11111111-1111-1111-1111-111111111111"),
        "Achat Appartement",
        [
            ("Offre acceptee", "Votre offre a ete acceptee par le vendeur"),
            ("Signature compromis", "Signature du compromis de vente chez le notaire"),
            ("Depot dossier bancaire", "Envoi du dossier complet a la banque"),
            ("Accord de pret", "Reception de l'accord definitif de la banque"),
            ("Levee des conditions suspensives", "Toutes les conditions sont remplies"),
            ("Signature acte authentique", "Signature finale chez le notaire et remise des cles"),
        ],
    ),
    (
        uuid.UUID("22222222-2222-2222-2222-222222222222"),
        "Vente Maison",
        [
            ("Mandat de vente signe", "Le mandat de vente a ete signe"),
            ("Diagnostics realises", "Tous les diagnostics obligatoires ont ete effectues"),
            ("Offre recue", "Une offre d'achat a ete recue"),
            ("Offre acceptee", "L'offre a ete acceptee"),
            ("Signature compromis", "Signature du compromis de vente"),
            ("Purge des droits de preemption", "Delai de preemption termine"),
            ("Signature acte authentique", "Vente finalisee chez le notaire"),
        ],
    ),
    (
        uuid.UUID("33333333-3333-3333-3333-333333333333"),
        "Location Prestige",
        [
            ("Visite effectuee", "Le bien a ete visite"),
            ("Dossier locataire valide", "Le dossier du locataire est complet et valide"),
            ("Bail prepare", "Le contrat de bail est pret"),
            ("Signature du bail", "Le bail a ete signe par toutes les parties"),
            ("Etat des lieux entree", "L'etat des lieux d'entree a ete realise"),
            ("Remise des cles", "Les cles ont ete remises au locataire"),
        ],
    ),
]


def seed_timeline_templates(db: Session) -> int:
    created = 0
    for template_id, name, steps in DEFAULT_TEMPLATES:
        if db.query(TimelineTemplate).filter(TimelineTemplate.id == template_id).first():
            continue
        db.add(TimelineTemplate(
            id=template_id,
            name=name,
            steps=[
                {"title": title, "description": description, "order": index}
                for index, (title, description) in enumerate(steps, start=1)
            ],
        ))
        created += 1
    return created


# Ordered; names are stable ledger keys and must never be renamed.
DATA_MIGRATIONS: List[Tuple[str, Callable[[Session], int]]] = [
    ("0001_backfill_agent_organizations", backfill_agent_organizations),
    ("0002_seed_timeline_templates", seed_timeline_templates),
]


def run_data_migrations(db: Session, migrations=None) -> List[str]:
    """Apply every migration not yet in the ledger, in order. Returns the names applied."""
    migrations = DATA_MIGRATIONS if migrations is None else migrations
    applied = {row[0] for row in db.query(AppliedDataMigration.name).all()}
    ran = []
    for name, migrate in migrations:
        if name in applied:
            continue
        logger.info("[MIGRATION] Applying %s", name)
        try:
            count = migrate(db)
            db.add(AppliedDataMigration(name=name))
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("[MIGRATION] %s failed, rolled back", name)
            raise
        logger.info("[MIGRATION] %s done (%s rows)", name, count)
        ran.append(name)
    return ran

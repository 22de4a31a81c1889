from estateflow.models.organization import Organization, SubscriptionStatus
from estateflow.models.agent import Agent
from estateflow.models.organization_member import OrganizationMember, Role
from estateflow.models.invitation import Invitation
from estateflow.models.magic_link import MagicLink
from estateflow.models.deal import Deal, DealStatus
from estateflow.models.timeline_step import TimelineStep, StepStatus
from estateflow.models.document import Document, DocumentCategory
from estateflow.models.deal_view import DealView, ViewType
from estateflow.models.timeline_template import TimelineTemplate
from estateflow.models.data_migration import AppliedDataMigration

__all__ = [
    "Organization", "SubscriptionStatus", "Agent", "OrganizationMember", "Role",
    "Invitation", "MagicLink", "Deal", "DealStatus", "TimelineStep", "StepStatus",
    "Document", "DocumentCategory", "DealView", "ViewType", "TimelineTemplate",
    "AppliedDataMigration",
]

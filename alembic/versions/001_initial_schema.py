"""initial schema: organizations, agents, membership, deals and the data migration ledger

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand_color", sa.String(7), nullable=False, server_default="#1a1a2e"),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("subscription_status", sa.String(20), nullable=False, server_default="Trial"),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("stripe_seat_item_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_organizations_stripe_customer_id", "organizations", ["stripe_customer_id"])

    op.create_table(
        "agents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("brand_color", sa.String(7), nullable=False, server_default="#1a1a2e"),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("social_links", sa.JSON(), nullable=True),
        sa.Column("subscription_status", sa.String(20), nullable=False, server_default="Trial"),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_agents_email", "agents", ["email"], unique=True)

    op.create_table(
        "organization_members",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="Employee"),
        sa.Column("joined_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_organization_members_agent_id", "organization_members", ["agent_id"])

    op.create_table(
        "invitations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="Employee"),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])

    op.create_table(
        "magic_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_magic_links_token", "magic_links", ["token"], unique=True)
    op.create_index("ix_magic_links_agent_id", "magic_links", ["agent_id"])

    op.create_table(
        "deals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("assigned_to_agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_by_agent_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("client_email", sa.String(255), nullable=False),
        sa.Column("property_address", sa.String(500), nullable=True),
        sa.Column("property_photo_url", sa.String(500), nullable=True),
        sa.Column("welcome_message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Active"),
        sa.Column("access_token", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_deals_access_token", "deals", ["access_token"], unique=True)
    op.create_index("ix_deals_agent_id", "deals", ["agent_id"])
    op.create_index("ix_deals_organization_id", "deals", ["organization_id"])
    op.create_index("ix_deals_assigned_to_agent_id", "deals", ["assigned_to_agent_id"])
    op.create_index("ix_deals_status", "deals", ["status"])

    op.create_table(
        "timeline_steps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("deal_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Pending"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_duration_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("inactivity_warning_days", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("inactivity_critical_days", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_timeline_steps_deal_id", "timeline_steps", ["deal_id"])

    op.create_table(
        "documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("deal_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="Reference"),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("signature_request_id", sa.String(255), nullable=True),
        sa.Column("signature_status", sa.String(50), nullable=True),
        sa.Column("signed_file_path", sa.String(500), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_documents_deal_id", "documents", ["deal_id"])

    op.create_table(
        "deal_views",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("deal_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("view_type", sa.String(20), nullable=False),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("documents.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("viewed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_deal_views_deal_id", "deal_views", ["deal_id"])
    op.create_index("ix_deal_views_viewed_at", "deal_views", ["viewed_at"])

    op.create_table(
        "timeline_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Ledger of one-shot data migrations (backfills, seeds) already applied
    op.create_table(
        "data_migrations",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("applied_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table("data_migrations")
    op.drop_table("timeline_templates")
    op.drop_index("ix_deal_views_viewed_at", table_name="deal_views")
    op.drop_index("ix_deal_views_deal_id", table_name="deal_views")
    op.drop_table("deal_views")
    op.drop_index("ix_documents_deal_id", table_name="documents")
    op.drop_table("documents")
    op.drop_index("ix_timeline_steps_deal_id", table_name="timeline_steps")
    op.drop_table("timeline_steps")
    op.drop_index("ix_deals_status", table_name="deals")
    op.drop_index("ix_deals_assigned_to_agent_id", table_name="deals")
    op.drop_index("ix_deals_organization_id", table_name="deals")
    op.drop_index("ix_deals_agent_id", table_name="deals")
    op.drop_index("ix_deals_access_token", table_name="deals")
    op.drop_table("deals")
    op.drop_index("ix_magic_links_agent_id", table_name="magic_links")
    op.drop_index("ix_magic_links_token", table_name="magic_links")
    op.drop_table("magic_links")
    op.drop_index("ix_invitations_email", table_name="invitations")
    op.drop_index("ix_invitations_organization_id", table_name="invitations")
    op.drop_index("ix_invitations_token", table_name="invitations")
    op.drop_table("invitations")
    op.drop_index("ix_organization_members_agent_id", table_name="organization_members")
    op.drop_table("organization_members")
    op.drop_index("ix_agents_email", table_name="agents")
    op.drop_table("agents")
    op.drop_index("ix_organizations_stripe_customer_id", table_name="organizations")
    op.drop_table("organizations")

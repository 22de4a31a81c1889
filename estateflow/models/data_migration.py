from sqlalchemy import Column, String, DateTime
from estateflow.db.session import Base
from estateflow.utils.clock import utcnow


class AppliedDataMigration(Base):
    """Ledger of one-time data migrations that completed successfully."""
    __tablename__ = "data_migrations"

    name = Column(String(100), primary_key=True)
    applied_at = Column(DateTime, default=utcnow, nullable=False)

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from estateflow.core.config import get_settings

_database_url = get_settings().DATABASE_URL
_connect_args = {"check_same_thread": False} if _database_url.startswith("sqlite") else {}

engine = create_engine(_database_url, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

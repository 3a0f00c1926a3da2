from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from quotadesk.core.config import settings


def build_engine(database_url: str | None = None):
    url = database_url or settings.DATABASE_URL
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Database wiring: one engine, one session factory and the declarative
# Base every model inherits from. Tests swap `engine` and `SessionLocal`
# on this module, so callers must read them at call time.

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from churnpulse.core.config import settings


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    connect_args=_connect_args(settings.DATABASE_URL),
    future=True,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

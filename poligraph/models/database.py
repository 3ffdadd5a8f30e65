from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from poligraph import config

connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db():
    """Create all tables if they don't exist."""
    # Register the models on Base.metadata
    from poligraph.models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """Yield a session for the duration of a request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

from contextlib import contextmanager

import redis.asyncio as redis
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from .core.config import settings

# 1. relational store (sync sessions, one unit of work per request)
if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 60},
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# 2. Redis (async, rate limiting); the client connects lazily on first command
redis_conn = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True,
    socket_connect_timeout=5
)

@contextmanager
def unit_of_work(db: Session):
    """Commit everything done inside the block once, or roll it all back."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# src/engine/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config import settings
from engine.models import Base


def build_engine(database_url: str):
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine):
    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)

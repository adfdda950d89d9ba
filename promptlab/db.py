# FILE: promptlab/db.py
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Database path: ./data/promptlab.db relative to project root
# Override with PROMPTLAB_DATABASE_URL env var if needed
DATABASE_URL = os.getenv("PROMPTLAB_DATABASE_URL", "sqlite:///./data/promptlab.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    echo=False,  # Set True to log SQL statements for debugging
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables. Call once at startup."""
    # Import models so Base.metadata knows about them
    from promptlab.memory import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)

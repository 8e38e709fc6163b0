from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import config

# ------------------------------------------------------------------
# Database configuration
# ------------------------------------------------------------------

DATABASE_URL = config.DATABASE_URL

engine_kwargs = {}
if DATABASE_URL.startswith("sqlite"):
    # Required for SQLite with FastAPI (requests may run on worker threads)
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # In-memory databases only live as long as their single connection
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, **engine_kwargs)

# Create a configured "Session" class
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for ORM models
Base = declarative_base()

# ------------------------------------------------------------------
# Dependency to get DB session
# ------------------------------------------------------------------

def get_db():
    """
    Provides a database session to FastAPI routes.
    Ensures session is properly closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

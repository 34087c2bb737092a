"""
Database configuration
"""
from sqlmodel import SQLModel, create_engine, Session
from core.config import get_settings

# Create engine lazily to allow test configuration to be applied
_engine = None


def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.
    """
    global _engine
    if _engine is None:
        _engine = create_engine(str(get_settings().SQLALCHEMY_DATABASE_URI), echo=False)
    return _engine


def create_db_and_tables():
    # Register the tables on SQLModel.metadata before creating them
    import api.filerecord.models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


# Yield session
def get_session():
    with Session(get_engine()) as session:
        yield session

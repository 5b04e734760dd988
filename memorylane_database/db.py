import os
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

# PUBLIC_INTERFACE
def get_database_url():
    """
    Retrieves the database URL from the environment variable DATABASE_URL.
    """
    load_dotenv()
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise ValueError("DATABASE_URL environment variable not set.")
    return db_url

# PUBLIC_INTERFACE
@lru_cache(maxsize=None)
def get_engine(database_url=None):
    """
    Returns the process-wide engine for DATABASE_URL (or the given URL).
    Created on first use so the in-memory backend never needs a database.
    """
    return create_engine(database_url or get_database_url(), future=True, echo=False)

# PUBLIC_INTERFACE
def get_session_factory(engine=None):
    """Builds a session factory bound to the given (or default) engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())

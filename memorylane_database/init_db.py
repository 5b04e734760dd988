"""
Database initialization/migration script.

Run this script to create all MemoryLane tables in the database
pointed to by DATABASE_URL.
"""
from memorylane_database.db import get_engine
from memorylane_database.models import Base

# PUBLIC_INTERFACE
def init_db(engine=None):
    """Initializes the database by creating all tables if they do not exist."""
    Base.metadata.create_all(bind=engine or get_engine())

if __name__ == "__main__":
    init_db()
    print("Database tables created successfully.")

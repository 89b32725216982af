# db.py
# Role: Database bootstrap for the trade ledger service.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists for the default
#       SQLite location.

"""
Database setup for the trade ledger.

- Uses DATABASE_URL from config (defaults to SQLite at <project_root>/database/ledger.db)
- Ensures the 'database' folder exists when the default SQLite file is used.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import BASE_DIR, DATABASE_URL

# Folder for the default SQLite DB (created on startup if missing)
DB_DIR = os.path.join(BASE_DIR, "database")
if DATABASE_URL.startswith("sqlite:///") and DB_DIR in DATABASE_URL:
    os.makedirs(DB_DIR, exist_ok=True)

# For SQLite, we need check_same_thread=False: persistence writes run in a worker thread
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
)

# Standard session factory used by the persistence gateway (see app/services/persistence.py)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()

"""
Database initialization script.

Run this to create the database tables:
    python -m automation_engine.db.init_db
"""

import logging

from automation_engine.db.database import init_db

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    init_db()

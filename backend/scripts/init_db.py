from oracyn.core.config import Settings
from oracyn.db.base import Base
from oracyn.db.engine import build_engine
from oracyn.db import models  # noqa: F401 (important for model registration)

"""
Database initialization script.

This script:
- Imports all ORM models to ensure they are registered with SQLAlchemy
- Creates the tables in the database named by DATABASE_URL
- Is meant for deployments that run with AUTO_CREATE_TABLES=false
"""


def main():
    settings = Settings()
    engine = build_engine(settings.DATABASE_URL)
    print(f"Creating database tables in {engine.url.render_as_string(hide_password=True)}...")
    Base.metadata.create_all(bind=engine)
    print(f"Created {len(Base.metadata.tables)} tables: {', '.join(sorted(Base.metadata.tables))}")


# Entry point when running the script directly
if __name__ == "__main__":
    main()

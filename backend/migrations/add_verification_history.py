"""
Migration: Add verification_history table and attachment metadata columns.

Existing deployments already carry daily_release and daily_release_verify
(owned by the release-management process). This adds:
1. verification_history - append-only trail of SAVE / CONFIRM / RETURN
2. daily_release_verify.attachment_filename / attachment_mimetype, when the
   legacy table predates them
"""
import os
import sys

from sqlalchemy import create_engine, inspect, text

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qa_release_tracker.db")

ATTACHMENT_COLUMNS = {
    "attachment_filename": "VARCHAR(255)",
    "attachment_mimetype": "VARCHAR(100)",
}


def run_migration():
    """Create the history table and backfill missing attachment columns."""
    from app.models.db_models import VerificationHistoryDB

    engine = create_engine(DATABASE_URL)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    if "daily_release_verify" not in tables:
        print("daily_release_verify does not exist; run the app once to create the schema")
        return

    existing = {c["name"] for c in inspector.get_columns("daily_release_verify")}
    with engine.connect() as conn:
        for column, ddl_type in ATTACHMENT_COLUMNS.items():
            if column in existing:
                print(f"{column} column already exists")
                continue
            conn.execute(text(f"ALTER TABLE daily_release_verify ADD COLUMN {column} {ddl_type}"))
            print(f"Added {column} column to daily_release_verify")
        conn.commit()

    if "verification_history" in tables:
        print("verification_history table already exists")
    else:
        VerificationHistoryDB.__table__.create(bind=engine)
        print("Created verification_history table")


if __name__ == "__main__":
    run_migration()

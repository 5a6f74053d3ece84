import logging
import sqlite3
from contextlib import contextmanager
from database_schemas import ALL_TABLE_SCHEMAS
from config import get_settings

logger = logging.getLogger(__name__)

DB_NAME = get_settings().database_path

@contextmanager
def get_db():
    conn = sqlite3.connect(DB_NAME)
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    with get_db() as conn:
        cursor = conn.cursor()
        for schema in ALL_TABLE_SCHEMAS:
            cursor.execute(schema)
        conn.commit()
    logger.info("Database initialised at %s", DB_NAME)

def stamp_last_active(cursor, user_id: int, status: str = "active"):
    """Overwrite a user's presence record with the current time.

    Creates the profile row when it is missing so a heartbeat never fails
    for an account created outside the signup flow.
    """
    cursor.execute("""
        INSERT INTO profiles (user_id, full_name, status, last_active)
        SELECT id, username, ?, CURRENT_TIMESTAMP FROM users WHERE id = ?
        ON CONFLICT(user_id) DO UPDATE SET
            status = excluded.status,
            last_active = CURRENT_TIMESTAMP
    """, (status, user_id))
    return cursor.rowcount

if __name__ == "__main__":
    init_db()

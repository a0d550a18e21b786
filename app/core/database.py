import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager

from app.core.config import settings
from app.core.errors import StorageUnavailable


@contextmanager
def db_connection(dsn: str | None = None):
    try:
        conn = psycopg2.connect(
            dsn or settings.DATABASE_URL,
            cursor_factory=RealDictCursor,
        )
    except psycopg2.OperationalError as e:
        raise StorageUnavailable(f"Database unreachable: {e}") from e
    try:
        yield conn
    finally:
        conn.close()

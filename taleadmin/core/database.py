import os
import sqlite3
from contextlib import contextmanager

from .config import get_config_value


class Database:
    """Thin sqlite3 helpers shared by the modules."""

    @staticmethod
    def backoffice_path():
        return get_config_value('BACKOFFICE_DB', 'backoffice.db')

    @staticmethod
    def audience_path():
        return get_config_value('AUDIENCE_DB', 'audience.db')

    @staticmethod
    def ensure_dir(path):
        db_dir = os.path.dirname(path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @staticmethod
    @contextmanager
    def connect(path):
        """
        Open a connection with dict-like rows and foreign keys enforced.
        Commits on success, rolls back on error, always closes.
        """
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

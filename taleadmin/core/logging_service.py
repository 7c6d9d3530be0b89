"""
Centralized logging service for the back office.
Provides structured logging with database storage alongside the stdlib logger.
"""

import json
import logging
import traceback
from datetime import datetime, timezone

from flask import request, has_request_context, session

from .config import Config
from .database import Database

logger = logging.getLogger('taleadmin')


class LoggingService:
    """Persistent application log stored in the back office DB"""

    @staticmethod
    def init_logs_table():
        """Ensure the app_logs table exists"""
        db_path = Database.backoffice_path()
        Database.ensure_dir(db_path)
        with Database.connect(db_path) as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {Config.LOGS_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    level TEXT NOT NULL,
                    source TEXT NOT NULL,
                    message TEXT NOT NULL,
                    details TEXT,
                    ip_address TEXT,
                    request_path TEXT,
                    admin_email TEXT
                )
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_logs_timestamp
                ON {Config.LOGS_TABLE}(timestamp DESC)
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_logs_level
                ON {Config.LOGS_TABLE}(level)
            """)

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        if ip_address and ',' in ip_address:
            ip_address = ip_address.split(',')[0].strip()

        return ip_address, request.path, session.get('admin_email')

    @staticmethod
    def log(level, source, message, details=None):
        """
        Log a message to the database

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (campaigns, mail_marketing, auth, ...)
            message (str): Main log message
            details (str/dict): Additional details (JSON-encoded if dict)
        """
        try:
            ip_address, request_path, admin_email = LoggingService._get_request_context()

            if isinstance(details, dict):
                details = json.dumps(details, indent=2, default=str)

            with Database.connect(Database.backoffice_path()) as conn:
                conn.execute(f"""
                    INSERT INTO {Config.LOGS_TABLE}
                    (timestamp, level, source, message, details, ip_address, request_path, admin_email)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    datetime.now(timezone.utc).isoformat(), level.upper(), source, message,
                    details, ip_address, request_path, admin_email
                ))
        except Exception as e:
            # The persistent log must never take a request down with it
            logger.warning(f"[{level.upper()}] [{source}] {message} (db log failed: {e})")

    @staticmethod
    def error(source, message, details=None):
        LoggingService.log('ERROR', source, message, details)

    @staticmethod
    def log_error_with_traceback(source, error, details=None):
        """Log error with full traceback"""
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        LoggingService.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    @staticmethod
    def get_recent(level=None, source=None, limit=50):
        """Most recent log rows, newest first"""
        query = f"SELECT * FROM {Config.LOGS_TABLE}"
        clauses, params = [], []
        if level:
            clauses.append("level = ?")
            params.append(level.upper())
        if source:
            clauses.append("source = ?")
            params.append(source)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with Database.connect(Database.backoffice_path()) as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]


def db_log(level, source, message, details=None):
    """Shorthand used by the modules: stdlib log line plus persistent row"""
    logging.getLogger(f'taleadmin.{source}').log(
        getattr(logging, level.upper(), logging.INFO), message
    )
    LoggingService.log(level, source, message, details)

"""
Shared fixtures for the TaleAdmin test suite.

Every test gets its own temporary directory for the sqlite databases and a
fully initialised app. The notification engine and story workflow transports
are replaced with a MagicMock so no test ever touches the network.
"""

import shutil
import tempfile
from unittest.mock import MagicMock

import pytest
from flask import Flask

from taleadmin import TaleAdmin
from taleadmin.core import Config, Database

ADMIN_EMAIL = "ana@mythoria.pt"
ENGINE_URL = "http://engine.test"
ENGINE_KEY = "engine-key"
INTERNAL_KEY = "internal-key"
WORKFLOW_URL = "http://workflow.test"
WORKFLOW_KEY = "workflow-key"


def fake_response(status_code=200, data=None):
    """requests.Response stand-in with a status and a JSON body"""
    response = MagicMock()
    response.status_code = status_code
    if data is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = data
    return response


def build_app(db_dir, **overrides):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["DB_DIR"] = db_dir
    app.config["GOOGLE_CLIENT_ID"] = ""
    app.config["ALLOWED_EMAIL_DOMAINS"] = "@mythoria.pt,@caravanconcierge.com"
    app.config["NOTIFICATION_ENGINE_URL"] = ENGINE_URL
    app.config["NOTIFICATION_ENGINE_API_KEY"] = ENGINE_KEY
    app.config["NOTIFICATION_ENGINE_TIMEOUT"] = 5
    app.config["STORY_GENERATION_WORKFLOW_URL"] = WORKFLOW_URL
    app.config["STORY_GENERATION_WORKFLOW_API_KEY"] = WORKFLOW_KEY
    app.config["ADMIN_API_KEY"] = INTERNAL_KEY
    app.config.update(overrides)
    TaleAdmin(app)
    return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for test databases, cleaned up after."""
    d = tempfile.mkdtemp(prefix="taleadmin-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def app(tmp_db_dir):
    """Fully initialised Flask app with all TaleAdmin modules registered."""
    return build_app(tmp_db_dir)


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def engine_http(app):
    """Mock transport behind the app's notification engine client."""
    http = MagicMock()
    http.request.return_value = fake_response(200, {"success": True})
    app.extensions["notification_engine"].http = http
    return http


@pytest.fixture
def workflow_http(app):
    """Mock transport behind the app's story generation workflow client."""
    http = MagicMock()
    http.request.return_value = fake_response(202, {"jobId": "job-1", "status": "pending"})
    app.extensions["story_workflow"].http = http
    return http

@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    """Test client whose session already holds an approved admin email."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["admin_email"] = ADMIN_EMAIL
        sess["admin_name"] = "Ana"
    return client


@pytest.fixture
def seed_audience(app):
    """Insert leads and authors into the audience DB."""
    def _seed(leads=(), authors=()):
        with app.app_context():
            with Database.connect(Database.audience_path()) as conn:
                for i, lead in enumerate(leads):
                    conn.execute(
                        f"INSERT INTO {Config.LEADS_TABLE} "
                        "(id, name, email, language, email_status, last_email_sent_at) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (
                            f"lead-{i}",
                            lead.get("name", f"Lead {i}"),
                            lead.get("email", f"lead{i}@example.com"),
                            lead.get("language"),
                            lead.get("email_status", "ready"),
                            lead.get("last_email_sent_at"),
                        ),
                    )
                for i, author in enumerate(authors):
                    conn.execute(
                        f"INSERT INTO {Config.AUTHORS_TABLE} "
                        "(author_id, email, created_at, last_login_at, preferred_locale, "
                        "notification_preference, gender, literary_age) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            f"author-{i}",
                            author.get("email", f"author{i}@example.com"),
                            author.get("created_at", "2025-01-01T00:00:00+00:00"),
                            author.get("last_login_at"),
                            author.get("preferred_locale"),
                            author.get("notification_preference", "news"),
                            author.get("gender"),
                            author.get("literary_age"),
                        ),
                    )
    return _seed

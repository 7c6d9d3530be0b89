"""
TaleAdmin - Marketing Campaign Back Office
==========================================

A Flask extension that mounts the admin API for email marketing campaigns:
- Staff sign-in with Google OAuth, restricted to approved email domains
- Campaign CRUD, lifecycle transitions and per-language assets
- Audience estimates over leads and platform users
- Batch and sample sends proxied to the notification engine
- AI drafting of campaign email assets through the story generation workflow
- Global mail marketing settings proxy
- Public /health endpoint

Usage:
    from flask import Flask
    from taleadmin import TaleAdmin

    app = Flask(__name__)
    TaleAdmin(app)

    # or with options
    TaleAdmin(app, {
        'BACKOFFICE_DB': '/data/backoffice.db',
        'features': {'mail_marketing': False},
    })
"""

import logging
import os

from .core import (
    Config, LoggingService, NotificationEngineClient, NotificationEngineConfig,
    StoryWorkflowClient, StoryWorkflowConfig,
)
from .core.errors import register_error_handlers

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'auth': True,
    'campaigns': True,
    'mail_marketing': True,
    'ops': True,
}

# Keys copied from Config into app.config when the app does not set them
CONFIG_KEYS = (
    'SECRET_KEY', 'DB_DIR', 'BACKOFFICE_DB', 'AUDIENCE_DB',
    'GOOGLE_CLIENT_ID', 'GOOGLE_CLIENT_SECRET', 'ALLOWED_EMAIL_DOMAINS',
    'NOTIFICATION_ENGINE_URL', 'NOTIFICATION_ENGINE_API_KEY', 'NOTIFICATION_ENGINE_TIMEOUT',
    'STORY_GENERATION_WORKFLOW_URL', 'STORY_GENERATION_WORKFLOW_API_KEY', 'STORY_GENERATION_WORKFLOW_TIMEOUT',
    'ADMIN_API_KEY',
)


class TaleAdmin:
    """
    Flask extension wiring every TaleAdmin module into an app.

    Args:
        app: Flask application (or None and call init_app later)
        config (dict): optional overrides; upper-case keys go to app.config,
            'features' toggles modules on or off
    """

    def __init__(self, app=None, config=None):
        self._config = dict(config or {})
        self._registered = []
        self.engine = None
        self.workflow = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self._apply_config(app)
        self._setup_database_dir(app)

        features = dict(DEFAULT_FEATURES)
        features.update(self._config.get('features') or {})

        with app.app_context():
            LoggingService.init_logs_table()
            self._init_databases(features)

        self.engine = NotificationEngineClient(NotificationEngineConfig.from_app(app))
        app.extensions['notification_engine'] = self.engine
        self.workflow = StoryWorkflowClient(StoryWorkflowConfig.from_app(app))
        app.extensions['story_workflow'] = self.workflow

        self._register_modules(app, features)
        register_error_handlers(app)

        app.extensions['taleadmin'] = self
        logger.info(f"TaleAdmin initialised with modules: {', '.join(self._registered)}")

    def _apply_config(self, app):
        for key, value in self._config.items():
            if key.isupper():
                app.config[key] = value

        db_dir = app.config.get('DB_DIR')
        if db_dir:
            app.config.setdefault('BACKOFFICE_DB', os.path.join(db_dir, 'backoffice.db'))
            app.config.setdefault('AUDIENCE_DB', os.path.join(db_dir, 'audience.db'))

        for key in CONFIG_KEYS:
            if app.config.get(key) is None:
                value = getattr(Config, key, None)
                if value is not None:
                    app.config[key] = value

        if not app.config.get('SECRET_KEY'):
            logger.warning("SECRET_KEY not set; sessions will not survive a restart")
            app.config['SECRET_KEY'] = os.urandom(32).hex()

    def _setup_database_dir(self, app):
        """Create DB_DIR and the directories holding each database"""
        if app.config.get('DB_DIR'):
            os.makedirs(app.config['DB_DIR'], exist_ok=True)
        for key in ('BACKOFFICE_DB', 'AUDIENCE_DB'):
            db_dir = os.path.dirname(app.config.get(key) or '')
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

    def _init_databases(self, features):
        if features.get('campaigns'):
            from .modules.campaigns import init_audience_db, init_campaigns_db
            init_campaigns_db()
            init_audience_db()

    def _register_modules(self, app, features):
        if features.get('auth'):
            from .modules.auth import auth_bp, configure_oauth
            if app.config.get('GOOGLE_CLIENT_ID'):
                configure_oauth(app)
            else:
                logger.warning("GOOGLE_CLIENT_ID not set; staff sign-in is disabled")
            app.register_blueprint(auth_bp)
            self._registered.append('auth')

        if features.get('campaigns'):
            from .modules.campaigns import campaigns_bp, internal_campaigns_bp
            app.register_blueprint(campaigns_bp)
            app.register_blueprint(internal_campaigns_bp)
            self._registered.append('campaigns')

        if features.get('mail_marketing'):
            from .modules.mail_marketing import mail_marketing_bp
            app.register_blueprint(mail_marketing_bp)
            self._registered.append('mail_marketing')

        if features.get('ops'):
            from .modules.ops import ops_health_bp
            app.register_blueprint(ops_health_bp)
            self._registered.append('ops')

    def get_registered_modules(self):
        return list(self._registered)


__all__ = ['TaleAdmin', '__version__']

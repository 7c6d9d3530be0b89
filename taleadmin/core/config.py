import os
from dotenv import load_dotenv

load_dotenv(override=True)


class Config:
    """
    Base configuration for the TaleAdmin back office.
    Deployments provide secrets and database paths via environment variables.
    """
    # Flask settings
    SECRET_KEY = os.getenv('SECRET_KEY') or os.getenv('FLASK_SECRET_KEY')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Campaigns, assets, batches and app logs live in the back office DB.
    # Leads and authors are read from the platform's audience DB.
    BACKOFFICE_DB = os.getenv('BACKOFFICE_DB', os.path.join(DB_DIR, "backoffice.db"))
    AUDIENCE_DB = os.getenv('AUDIENCE_DB', os.path.join(DB_DIR, "audience.db"))

    # OAuth settings
    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')

    # Only staff addresses from these domains may use the admin API
    ALLOWED_EMAIL_DOMAINS = os.getenv('ALLOWED_EMAIL_DOMAINS', '@mythoria.pt,@caravanconcierge.com')

    # Notification engine (performs the actual sending)
    NOTIFICATION_ENGINE_URL = os.getenv('NOTIFICATION_ENGINE_URL')
    NOTIFICATION_ENGINE_API_KEY = os.getenv('NOTIFICATION_ENGINE_API_KEY')
    NOTIFICATION_ENGINE_TIMEOUT = float(os.getenv('NOTIFICATION_ENGINE_TIMEOUT', '30'))

    # Story generation workflow (drafts campaign email assets with AI)
    STORY_GENERATION_WORKFLOW_URL = os.getenv('STORY_GENERATION_WORKFLOW_URL')
    STORY_GENERATION_WORKFLOW_API_KEY = os.getenv('STORY_GENERATION_WORKFLOW_API_KEY')
    STORY_GENERATION_WORKFLOW_TIMEOUT = float(os.getenv('STORY_GENERATION_WORKFLOW_TIMEOUT', '30'))

    # Key the notification engine presents when calling back into /api/internal
    ADMIN_API_KEY = os.getenv('ADMIN_API_KEY')

    # Table names
    CAMPAIGNS_TABLE = "marketing_campaigns"
    CAMPAIGN_ASSETS_TABLE = "marketing_campaign_assets"
    CAMPAIGN_BATCHES_TABLE = "marketing_campaign_batches"
    LEADS_TABLE = "leads"
    AUTHORS_TABLE = "authors"
    LOGS_TABLE = "app_logs"


def get_config_value(key, default=None):
    """Get configuration value: Flask app config first, then Config, then env var"""
    try:
        from flask import current_app
        val = current_app.config.get(key)
        if val is not None:
            return val
    except RuntimeError:
        pass
    val = getattr(Config, key, None)
    if val is not None:
        return val
    return os.getenv(key, default)


def get_allowed_domains():
    """Approved staff email domains as a list (config may hold a list or a comma string)"""
    domains = get_config_value('ALLOWED_EMAIL_DOMAINS', '')
    if isinstance(domains, str):
        domains = domains.split(',')
    return [d.strip().lower() for d in domains if d and d.strip()]

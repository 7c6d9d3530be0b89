"""
Campaigns Module
================

Provides:
- Marketing campaign CRUD with a draft/active/paused/completed/cancelled lifecycle
- Per-language email assets
- Audience estimates over leads and platform users, narrowed by filter trees
- Batch and sample sends proxied to the notification engine
- Progress and batch history from the batch ledger

Usage:
    from taleadmin.modules.campaigns import campaigns_bp, internal_campaigns_bp

    app.register_blueprint(campaigns_bp)           # Registers at /api/email-campaigns
    app.register_blueprint(internal_campaigns_bp)  # Registers at /api/internal/campaigns
"""

from flask import Blueprint

# Admin JSON API (session auth)
campaigns_bp = Blueprint(
    'campaigns',
    __name__,
    url_prefix='/api/email-campaigns'
)

# Callbacks from the notification engine (API key auth)
internal_campaigns_bp = Blueprint(
    'internal_campaigns',
    __name__,
    url_prefix='/api/internal/campaigns'
)

from . import routes
from .models import init_campaigns_db
from .audience import init_audience_db

__all__ = ['campaigns_bp', 'internal_campaigns_bp', 'init_campaigns_db', 'init_audience_db']

"""
TaleAdmin Auth Module

Provides staff authentication:
- Google OAuth sign-in (via authlib) restricted to approved email domains
- Session-based admin guard for the JSON API
- API key guard for calls from the notification engine
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/admin/auth')

from . import routes
from .utils import admin_required, api_key_required, configure_oauth, current_admin_email, is_allowed_domain, oauth

__all__ = [
    'auth_bp', 'admin_required', 'api_key_required', 'configure_oauth',
    'current_admin_email', 'is_allowed_domain', 'oauth',
]

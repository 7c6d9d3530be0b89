import hmac
from functools import wraps

from authlib.integrations.flask_client import OAuth
from flask import g, request, session

from taleadmin.core import Forbidden, Unauthorized, db_log, get_allowed_domains, get_config_value

# OAuth registry, bound to the app in configure_oauth
oauth = OAuth()


def configure_oauth(app):
    """Configure the Google OAuth provider used for staff sign-in"""
    oauth.init_app(app)

    google = oauth.register(
        name='google',
        client_id=app.config.get('GOOGLE_CLIENT_ID'),
        client_secret=app.config.get('GOOGLE_CLIENT_SECRET'),
        server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
        client_kwargs={
            'scope': 'openid email profile',
            'prompt': 'select_account',
        }
    )
    return google


def is_allowed_domain(email):
    """True when the email ends with one of the approved staff domains"""
    if not email:
        return False
    email = email.lower()
    return any(email.endswith(domain) for domain in get_allowed_domains())


def current_admin_email():
    """Email of the admin acting in this request (set by admin_required)"""
    return g.get('admin_email') or session.get('admin_email')


def admin_required(f):
    """Decorator to require an authenticated admin session from an approved domain"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        email = session.get('admin_email')
        if not email:
            raise Unauthorized('Unauthorized')
        if not is_allowed_domain(email):
            db_log('warning', 'auth', f'Rejected admin request from disallowed domain: {email}')
            raise Forbidden('Forbidden')
        g.admin_email = email
        return f(*args, **kwargs)
    return decorated_function


def _presented_api_key():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.lower().startswith('bearer '):
        return auth_header[7:].strip()
    return request.headers.get('X-API-Key')


def api_key_required(f):
    """Decorator for service-to-service calls: X-API-Key or Bearer must equal ADMIN_API_KEY"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = get_config_value('ADMIN_API_KEY')
        if not expected:
            db_log('error', 'auth', 'ADMIN_API_KEY not configured; rejecting internal call')
            raise Unauthorized('API key authentication not configured')

        api_key = _presented_api_key()
        if not api_key:
            raise Unauthorized('API key required')
        if not hmac.compare_digest(api_key.encode(), expected.encode()):
            masked = '***' if len(api_key) <= 6 else f'{api_key[:3]}***{api_key[-3:]}'
            db_log('warning', 'auth', 'Invalid API key attempt', {'key': masked})
            raise Unauthorized('Invalid API key')

        g.admin_email = 'notification-engine'
        return f(*args, **kwargs)
    return decorated_function

"""
Auth Routes
===========

- GET  /admin/auth/login     -- redirect to Google
- GET  /admin/auth/callback  -- finish OAuth, store admin email in session
- POST /admin/auth/logout    -- clear session
- GET  /admin/auth/me        -- who am I
"""

from flask import jsonify, redirect, request, session, url_for

from taleadmin.core import Forbidden, Unauthorized, db_log, get_allowed_domains

from . import auth_bp
from .utils import admin_required, current_admin_email, is_allowed_domain, oauth


@auth_bp.route('/login')
def login():
    """Initiate OAuth login"""
    client = oauth.create_client('google')
    if client is None:
        raise Unauthorized('OAuth not configured')

    session['post_login_redirect'] = request.args.get('next', '/')
    redirect_uri = url_for('auth.callback', _external=True)
    return client.authorize_redirect(redirect_uri)


@auth_bp.route('/callback')
def callback():
    """Handle OAuth callback"""
    client = oauth.create_client('google')
    if client is None:
        raise Unauthorized('OAuth not configured')

    token = client.authorize_access_token()
    user_info = token.get('userinfo') or client.userinfo(token=token)
    email = (user_info or {}).get('email')

    if not email:
        raise Unauthorized('Unable to retrieve email from your account')

    if not user_info.get('email_verified'):
        db_log('warning', 'auth', f'Sign-in rejected: email not verified for {email}')
        raise Forbidden('Email not verified')

    if not is_allowed_domain(email):
        db_log('warning', 'auth', f'Sign-in rejected: domain not allowed for {email}')
        raise Forbidden('Domain not allowed')

    session['admin_email'] = email
    session['admin_name'] = user_info.get('name', '')
    db_log('info', 'auth', f'Sign-in approved for {email}')

    return redirect(session.pop('post_login_redirect', '/'))


@auth_bp.route('/logout', methods=['POST'])
def logout():
    email = session.get('admin_email')
    session.clear()
    if email:
        db_log('info', 'auth', f'Signed out: {email}')
    return jsonify({'success': True})


@auth_bp.route('/me')
@admin_required
def me():
    return jsonify({
        'email': current_admin_email(),
        'name': session.get('admin_name', ''),
        'allowedDomains': get_allowed_domains(),
    })

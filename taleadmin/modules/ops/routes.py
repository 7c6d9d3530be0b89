from datetime import datetime, timezone

from flask import current_app, jsonify

from taleadmin.core import Database

from . import ops_health_bp


def _check_database(path):
    """Open the DB and run a trivial query"""
    try:
        with Database.connect(path) as conn:
            conn.execute('SELECT 1').fetchone()
        return {'ok': True}
    except Exception as e:
        current_app.logger.warning(f"ops: database check failed for {path}: {e}")
        return {'ok': False, 'error': str(e)}


def _build_health_response():
    """Build the health check response dict."""
    engine = current_app.extensions.get('notification_engine')
    checks = {
        'backoffice_db': _check_database(Database.backoffice_path()),
        'audience_db': _check_database(Database.audience_path()),
        'notification_engine': {'configured': bool(engine and engine.config.base_url)},
    }

    issues = [name for name in ('backoffice_db', 'audience_db') if not checks[name]['ok']]
    if not checks['notification_engine']['configured']:
        status = 'warning'
        issues.append('notification_engine')
    else:
        status = 'ok'
    if not checks['backoffice_db']['ok'] or not checks['audience_db']['ok']:
        status = 'critical'

    return {
        'status': status,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'checks': checks,
        'issues': issues,
    }, status


@ops_health_bp.route('/')
@ops_health_bp.route('')
def health_check():
    """Public health endpoint for uptime monitors."""
    data, status = _build_health_response()
    code = 503 if status == 'critical' else 200
    return jsonify(data), code

"""
Mail Marketing Routes
=====================

Thin pass-through to the notification engine. Engine errors come back to
the caller with the engine's own status and body.
"""

from flask import jsonify, request

from taleadmin.core import UpstreamFailure, db_log, get_engine_client, parse
from taleadmin.modules.auth import admin_required, current_admin_email

from . import mail_marketing_bp
from .schemas import MailMarketingConfigUpdate


def _proxy_response(result):
    return jsonify(result.data if result.data is not None else {}), result.status_code


@mail_marketing_bp.route('/config', methods=['GET'])
@admin_required
def get_config():
    return _proxy_response(get_engine_client().get_mail_marketing_config())


@mail_marketing_bp.route('/config', methods=['PUT'])
@admin_required
def update_config():
    """Validate and forward a partial config update, stamped with the admin"""
    update = parse(MailMarketingConfigUpdate, request.get_json(silent=True))
    changes = update.model_dump(by_alias=True, include=update.model_fields_set)
    admin_email = current_admin_email()

    try:
        result = get_engine_client().update_mail_marketing_config(changes, admin_email)
    except UpstreamFailure as e:
        db_log('error', 'mail_marketing', 'Config update rejected by notification engine',
               {'status': e.status, 'response': e.payload, 'changes': changes})
        raise

    db_log('info', 'mail_marketing', 'Mail marketing config updated', {'changes': changes, 'admin': admin_email})
    return _proxy_response(result)


@mail_marketing_bp.route('/status', methods=['GET'])
@admin_required
def get_status():
    return _proxy_response(get_engine_client().get_mail_marketing_status())


@mail_marketing_bp.route('/send-batch', methods=['POST'])
@admin_required
def send_batch():
    """Trigger one global batch across all active campaigns"""
    admin_email = current_admin_email()
    try:
        result = get_engine_client().trigger_mail_marketing_batch(
            admin_email, request.headers.get('Idempotency-Key')
        )
    except UpstreamFailure as e:
        db_log('error', 'mail_marketing', 'Global batch trigger failed',
               {'status': e.status, 'response': e.payload})
        raise

    db_log('info', 'mail_marketing', 'Global batch triggered', {'admin': admin_email})
    return _proxy_response(result)

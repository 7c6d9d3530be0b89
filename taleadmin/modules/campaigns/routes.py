"""
Campaigns Routes
================

Admin JSON API for marketing campaigns (session auth, approved domains):
CRUD, lifecycle transitions, assets, audience estimates, progress and the
batch/sample send proxies and the AI asset generation proxy.

Internal API for the notification engine (API key auth): batch ledger
writes and system completion.
"""

import logging

from flask import jsonify, request

from taleadmin.core import (
    InvalidTransition, NotFound, UpstreamFailure, ValidationFailed, db_log, get_engine_client,
    get_workflow_client, parse, present_fields,
)
from taleadmin.modules.auth import admin_required, api_key_required, current_admin_email

from . import campaigns_bp, internal_campaigns_bp
from .audience import estimate_for_campaign
from .email_templates import load_template
from .models import (
    activate_campaign, cancel_campaign, complete_campaign, create_campaign, delete_asset,
    delete_campaign, duplicate_campaign, get_batch_history, get_campaign, get_campaign_progress,
    list_campaigns, pause_campaign, record_batch, update_campaign, upsert_asset,
)
from .schemas import (
    AudienceEstimate, BatchReport, CampaignAssetInput, CampaignCreate, CampaignUpdate,
    GenerateAssets, Pagination, SampleSend,
)

logger = logging.getLogger(__name__)

DETAIL_BATCH_HISTORY_LIMIT = 10


def _json_body():
    return request.get_json(silent=True)


def _require_campaign(campaign_id):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        raise NotFound('Campaign not found')
    return campaign


def _proxy_response(result):
    """Pass the engine's status and body straight through"""
    return jsonify(result.data if result.data is not None else {}), result.status_code


# ===================
# CAMPAIGN CRUD
# ===================

@campaigns_bp.route('', methods=['GET'])
@admin_required
def campaign_list():
    """List campaigns (page, limit, status)"""
    query = parse(Pagination, request.args.to_dict(), 'Invalid query parameters')
    return jsonify(list_campaigns(query.page, query.limit, query.status))


@campaigns_bp.route('', methods=['POST'])
@admin_required
def campaign_create():
    data = parse(CampaignCreate, _json_body())
    campaign = create_campaign(data.model_dump(), current_admin_email())
    return jsonify(campaign), 201


@campaigns_bp.route('/<campaign_id>', methods=['GET'])
@admin_required
def campaign_detail(campaign_id):
    """Campaign with assets, progress and the latest batches"""
    campaign = _require_campaign(campaign_id)
    campaign['progress'] = get_campaign_progress(campaign_id)
    campaign['batchHistory'] = get_batch_history(campaign_id, 1, DETAIL_BATCH_HISTORY_LIMIT)
    return jsonify(campaign)


@campaigns_bp.route('/<campaign_id>', methods=['PATCH'])
@admin_required
def campaign_update(campaign_id):
    """
    Update metadata and/or upsert assets in one call.

    Body: any CampaignUpdate fields, plus an optional `assets` list of
    {language, subject, htmlBody, textBody}. Everything is validated
    before anything is written.
    """
    body = _json_body()
    if not isinstance(body, dict):
        raise ValidationFailed('Request body must be a JSON object')

    raw_assets = body.get('assets') or []
    if not isinstance(raw_assets, list):
        raise ValidationFailed('Asset validation failed', [{'field': 'assets', 'message': 'Must be a list'}])

    metadata = {key: value for key, value in body.items() if key != 'assets'}
    updates = present_fields(parse(CampaignUpdate, metadata)) if metadata else {}
    assets = [parse(CampaignAssetInput, asset, 'Asset validation failed') for asset in raw_assets]

    admin_email = current_admin_email()
    _require_campaign(campaign_id)

    if updates:
        update_campaign(campaign_id, updates, admin_email)
    for asset in assets:
        upsert_asset(campaign_id, asset.model_dump())

    return jsonify(get_campaign(campaign_id))


@campaigns_bp.route('/<campaign_id>', methods=['DELETE'])
@admin_required
def campaign_delete(campaign_id):
    delete_campaign(campaign_id)
    return jsonify({'success': True})


@campaigns_bp.route('/<campaign_id>/duplicate', methods=['POST'])
@admin_required
def campaign_duplicate(campaign_id):
    return jsonify(duplicate_campaign(campaign_id, current_admin_email())), 201


# ===================
# LIFECYCLE
# ===================

@campaigns_bp.route('/<campaign_id>/activate', methods=['POST'])
@admin_required
def campaign_activate(campaign_id):
    return jsonify(activate_campaign(campaign_id, current_admin_email()))


@campaigns_bp.route('/<campaign_id>/pause', methods=['POST'])
@admin_required
def campaign_pause(campaign_id):
    return jsonify(pause_campaign(campaign_id, current_admin_email()))


@campaigns_bp.route('/<campaign_id>/cancel', methods=['POST'])
@admin_required
def campaign_cancel(campaign_id):
    return jsonify(cancel_campaign(campaign_id, current_admin_email()))


# ===================
# ASSETS
# ===================

@campaigns_bp.route('/<campaign_id>/assets/<language>', methods=['PUT'])
@admin_required
def asset_upsert(campaign_id, language):
    """Create or replace the email asset for one language"""
    body = _json_body()
    if isinstance(body, dict):
        body = dict(body, language=language)
    asset = parse(CampaignAssetInput, body, 'Asset validation failed')
    return jsonify(upsert_asset(campaign_id, asset.model_dump()))


@campaigns_bp.route('/<campaign_id>/assets/<language>', methods=['DELETE'])
@admin_required
def asset_delete(campaign_id, language):
    delete_asset(campaign_id, language)
    return jsonify({'success': True})


# ===================
# AUDIENCE & PROGRESS
# ===================

@campaigns_bp.route('/<campaign_id>/audience-count', methods=['GET'])
@admin_required
def audience_count(campaign_id):
    """Estimate for the campaign as stored"""
    campaign = _require_campaign(campaign_id)
    return jsonify(estimate_for_campaign(campaign))


@campaigns_bp.route('/<campaign_id>/audience-count', methods=['POST'])
@admin_required
def audience_count_preview(campaign_id):
    """Estimate with unsaved draft values layered over the stored campaign"""
    campaign = _require_campaign(campaign_id)
    draft = parse(AudienceEstimate, _json_body() or {})
    overrides = draft.model_dump(by_alias=True, include=draft.model_fields_set)
    return jsonify(estimate_for_campaign(campaign, overrides))


@campaigns_bp.route('/<campaign_id>/progress', methods=['GET'])
@admin_required
def campaign_progress(campaign_id):
    return jsonify(get_campaign_progress(campaign_id))


@campaigns_bp.route('/<campaign_id>/batches', methods=['GET'])
@admin_required
def campaign_batches(campaign_id):
    query = parse(Pagination, request.args.to_dict(), 'Invalid query parameters')
    return jsonify(get_batch_history(campaign_id, query.page, query.limit))


# ===================
# SEND PROXIES
# ===================

@campaigns_bp.route('/<campaign_id>/send-batch', methods=['POST'])
@admin_required
def campaign_send_batch(campaign_id):
    """Ask the notification engine to run the next batch of an active campaign"""
    campaign = _require_campaign(campaign_id)
    if campaign['status'] != 'active':
        raise InvalidTransition(
            f"Cannot send batch for campaign in '{campaign['status']}' status. Only active campaigns can send.",
            campaign['status'],
        )

    admin_email = current_admin_email()
    try:
        result = get_engine_client().trigger_campaign_batch(
            campaign_id, admin_email, request.headers.get('Idempotency-Key')
        )
    except UpstreamFailure as e:
        db_log('error', 'campaigns', f'Batch trigger failed for campaign {campaign_id}',
               {'status': e.status, 'response': e.payload})
        raise

    db_log('info', 'campaigns', f'Batch triggered for campaign {campaign_id}', {'admin': admin_email})
    return _proxy_response(result)


@campaigns_bp.route('/<campaign_id>/send-sample', methods=['POST'])
@admin_required
def campaign_send_sample(campaign_id):
    """Send one rendered sample of a locale's asset to a single address"""
    sample = parse(SampleSend, _json_body())
    _require_campaign(campaign_id)

    admin_email = current_admin_email()
    try:
        result = get_engine_client().send_sample(
            campaign_id, sample.locale, sample.email, admin_email, sample.variables
        )
    except UpstreamFailure as e:
        db_log('error', 'campaigns', f'Sample send failed for campaign {campaign_id}',
               {'status': e.status, 'response': e.payload, 'locale': sample.locale})
        raise

    db_log('info', 'campaigns', f'Sample sent for campaign {campaign_id} [{sample.locale}] to {sample.email}')
    return _proxy_response(result)


# ===================
# AI ASSET GENERATION
# ===================

@campaigns_bp.route('/<campaign_id>/generate-assets', methods=['POST'])
@admin_required
def generate_assets_start(campaign_id):
    """Start an async job that drafts the campaign's email assets in every locale"""
    job = parse(GenerateAssets, _json_body())
    _require_campaign(campaign_id)
    template_html = load_template(job.template_name)

    try:
        result = get_workflow_client().start_email_asset_job(
            campaign_id, job.source_locale, job.subject, job.body_description, template_html
        )
    except UpstreamFailure as e:
        db_log('error', 'campaigns', f'Asset generation failed to start for campaign {campaign_id}',
               {'status': e.status, 'response': e.payload})
        raise

    db_log('info', 'campaigns', f'Asset generation started for campaign {campaign_id}',
           {'template': job.template_name, 'sourceLocale': job.source_locale})
    return _proxy_response(result)


@campaigns_bp.route('/<campaign_id>/generate-assets', methods=['GET'])
@admin_required
def generate_assets_status(campaign_id):
    """Poll a generation job: ?jobId=..."""
    _require_campaign(campaign_id)
    job_id = request.args.get('jobId')
    if not job_id:
        raise ValidationFailed('jobId query parameter is required',
                               [{'field': 'jobId', 'message': 'Field required'}])
    return _proxy_response(get_workflow_client().get_job(job_id))


# ===================
# INTERNAL (notification engine)
# ===================

@internal_campaigns_bp.route('/<campaign_id>/batches', methods=['POST'])
@api_key_required
def internal_record_batch(campaign_id):
    """Append a batch record after the engine finishes (or fails) a run"""
    report = parse(BatchReport, _json_body())
    return jsonify(record_batch(campaign_id, report.model_dump())), 201


@internal_campaigns_bp.route('/<campaign_id>/complete', methods=['POST'])
@api_key_required
def internal_complete(campaign_id):
    """The engine reports the campaign's audience is exhausted"""
    return jsonify(complete_campaign(campaign_id, current_admin_email()))

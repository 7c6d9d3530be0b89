"""
Campaigns Models
================

Database schema, CRUD and the status state machine for marketing campaigns.
Campaigns, their per-language assets and the batch ledger live in the
back office DB (BACKOFFICE_DB).

Functions take and return plain dicts. Rows are returned camelCase, the way
the JSON API exposes them. Storage errors propagate to the caller.
"""

import json
import logging
import uuid
from datetime import datetime, timezone

from taleadmin.core import Config, Database, InvalidTransition, NotFound, db_log

logger = logging.getLogger(__name__)

CAMPAIGNS = Config.CAMPAIGNS_TABLE
ASSETS = Config.CAMPAIGN_ASSETS_TABLE
BATCHES = Config.CAMPAIGN_BATCHES_TABLE

DUPLICATE_SUFFIX = ' - copy'
MAX_TITLE_LENGTH = 255

# 'completed' is only ever reached through the system completion path
ALLOWED_TRANSITIONS = {
    'draft': ('active', 'cancelled'),
    'active': ('paused', 'cancelled', 'completed'),
    'paused': ('active', 'cancelled', 'completed'),
    'completed': (),
    'cancelled': (),
}

DELETABLE_STATUSES = ('draft', 'cancelled')

# snake_case column -> camelCase key
_CAMPAIGN_COLUMNS = {
    'id': 'id',
    'title': 'title',
    'description': 'description',
    'status': 'status',
    'audience_source': 'audienceSource',
    'user_notification_preferences': 'userNotificationPreferences',
    'filter_tree': 'filterTree',
    'daily_send_limit': 'dailySendLimit',
    'start_at': 'startAt',
    'end_at': 'endAt',
    'created_by': 'createdBy',
    'updated_by': 'updatedBy',
    'created_at': 'createdAt',
    'updated_at': 'updatedAt',
}

_EDITABLE_COLUMNS = (
    'title', 'description', 'audience_source', 'user_notification_preferences',
    'filter_tree', 'daily_send_limit', 'start_at', 'end_at',
)

_JSON_COLUMNS = ('user_notification_preferences', 'filter_tree')


def _now():
    return datetime.now(timezone.utc).isoformat()


def _db_path():
    return Database.backoffice_path()


def init_campaigns_db():
    """Create campaign, asset and batch tables in the back office DB"""
    db_path = _db_path()
    Database.ensure_dir(db_path)

    with Database.connect(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {CAMPAIGNS} (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                status TEXT NOT NULL DEFAULT 'draft',
                audience_source TEXT NOT NULL,
                user_notification_preferences TEXT,
                filter_tree TEXT,
                daily_send_limit INTEGER,
                start_at TEXT,
                end_at TEXT,
                created_by TEXT,
                updated_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')

        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {ASSETS} (
                id TEXT PRIMARY KEY,
                campaign_id TEXT NOT NULL,
                channel TEXT NOT NULL DEFAULT 'email',
                language TEXT NOT NULL,
                subject TEXT NOT NULL,
                html_body TEXT NOT NULL,
                text_body TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (campaign_id, channel, language),
                FOREIGN KEY (campaign_id) REFERENCES {CAMPAIGNS}(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {BATCHES} (
                id TEXT PRIMARY KEY,
                campaign_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'queued',
                requested_by TEXT,
                requested_at TEXT NOT NULL,
                started_at TEXT,
                completed_at TEXT,
                stats TEXT,
                asset_snapshot_hash TEXT,
                sample_send INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (campaign_id) REFERENCES {CAMPAIGNS}(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute(f'CREATE INDEX IF NOT EXISTS idx_campaigns_status ON {CAMPAIGNS}(status)')
        cursor.execute(f'CREATE INDEX IF NOT EXISTS idx_campaigns_created ON {CAMPAIGNS}(created_at DESC)')
        cursor.execute(f'CREATE INDEX IF NOT EXISTS idx_campaign_assets_campaign ON {ASSETS}(campaign_id)')
        cursor.execute(f'CREATE INDEX IF NOT EXISTS idx_campaign_batches_campaign ON {BATCHES}(campaign_id)')

    logger.info("Campaigns database tables created/verified successfully")


# ===================
# ROW CONVERSION
# ===================

def _to_storage(column, value):
    """Python value -> sqlite value for one campaign column"""
    if value is None:
        return None
    if column in _JSON_COLUMNS:
        return json.dumps(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _campaign_to_dict(row):
    campaign = {}
    for column, key in _CAMPAIGN_COLUMNS.items():
        value = row[column]
        if column in _JSON_COLUMNS and value is not None:
            value = json.loads(value)
        campaign[key] = value
    return campaign


def _asset_to_dict(row):
    return {
        'id': row['id'],
        'campaignId': row['campaign_id'],
        'channel': row['channel'],
        'language': row['language'],
        'subject': row['subject'],
        'htmlBody': row['html_body'],
        'textBody': row['text_body'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


def _batch_to_dict(row):
    return {
        'id': row['id'],
        'campaignId': row['campaign_id'],
        'status': row['status'],
        'requestedBy': row['requested_by'],
        'requestedAt': row['requested_at'],
        'startedAt': row['started_at'],
        'completedAt': row['completed_at'],
        'stats': json.loads(row['stats']) if row['stats'] else None,
        'assetSnapshotHash': row['asset_snapshot_hash'],
        'sampleSend': bool(row['sample_send']),
    }


def _fetch_campaign_row(conn, campaign_id):
    return conn.execute(f'SELECT * FROM {CAMPAIGNS} WHERE id = ?', (campaign_id,)).fetchone()


def _require_campaign_row(conn, campaign_id):
    row = _fetch_campaign_row(conn, campaign_id)
    if row is None:
        raise NotFound('Campaign not found')
    return row


def _fetch_assets(conn, campaign_id):
    rows = conn.execute(
        f'SELECT * FROM {ASSETS} WHERE campaign_id = ? ORDER BY language ASC', (campaign_id,)
    ).fetchall()
    return [_asset_to_dict(row) for row in rows]


# ===================
# CAMPAIGN CRUD
# ===================

def create_campaign(data, admin_email):
    """
    Insert a new campaign. New campaigns always start in 'draft'.

    Args:
        data (dict): snake_case fields (title, audience_source, ...)
        admin_email (str): stamped as createdBy and updatedBy

    Returns:
        dict: the stored campaign, with an empty assets list
    """
    campaign_id = str(uuid.uuid4())
    now = _now()
    values = {column: _to_storage(column, data.get(column)) for column in _EDITABLE_COLUMNS}

    with Database.connect(_db_path()) as conn:
        conn.execute(f'''
            INSERT INTO {CAMPAIGNS}
            (id, title, description, status, audience_source, user_notification_preferences,
             filter_tree, daily_send_limit, start_at, end_at, created_by, updated_by, created_at, updated_at)
            VALUES (?, ?, ?, 'draft', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            campaign_id, values['title'], values['description'], values['audience_source'],
            values['user_notification_preferences'], values['filter_tree'], values['daily_send_limit'],
            values['start_at'], values['end_at'], admin_email, admin_email, now, now,
        ))

    db_log('info', 'campaigns', f"Campaign created: {data.get('title')}",
           {'campaign_id': campaign_id, 'admin': admin_email})
    return get_campaign(campaign_id)


def get_campaign(campaign_id):
    """Campaign with its assets ordered by language, or None"""
    with Database.connect(_db_path()) as conn:
        row = _fetch_campaign_row(conn, campaign_id)
        if row is None:
            return None
        campaign = _campaign_to_dict(row)
        campaign['assets'] = _fetch_assets(conn, campaign_id)
        return campaign


def list_campaigns(page=1, limit=20, status=None):
    """One page of campaigns, newest first"""
    offset = (page - 1) * limit
    where, params = '', []
    if status:
        where = 'WHERE status = ?'
        params.append(status)

    with Database.connect(_db_path()) as conn:
        total = conn.execute(f'SELECT COUNT(*) FROM {CAMPAIGNS} {where}', params).fetchone()[0]
        rows = conn.execute(
            f'SELECT * FROM {CAMPAIGNS} {where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?',
            params + [limit, offset],
        ).fetchall()

    return {
        'campaigns': [_campaign_to_dict(row) for row in rows],
        'total': total,
        'page': page,
        'limit': limit,
    }


def update_campaign(campaign_id, data, admin_email):
    """
    Apply a partial metadata update. Only draft campaigns can be edited.
    Keys absent from `data` are left alone; a key set to None clears the column.
    """
    changes = {column: _to_storage(column, data[column]) for column in _EDITABLE_COLUMNS if column in data}

    with Database.connect(_db_path()) as conn:
        row = _require_campaign_row(conn, campaign_id)
        if row['status'] != 'draft':
            raise InvalidTransition(
                f"Cannot update campaign in '{row['status']}' status. Only draft campaigns can be edited.",
                row['status'],
            )

        changes['updated_by'] = admin_email
        changes['updated_at'] = _now()
        assignments = ', '.join(f'{column} = ?' for column in changes)
        cursor = conn.execute(
            f"UPDATE {CAMPAIGNS} SET {assignments} WHERE id = ? AND status = 'draft'",
            list(changes.values()) + [campaign_id],
        )
        if cursor.rowcount == 0:
            current = _require_campaign_row(conn, campaign_id)['status']
            raise InvalidTransition(
                f"Cannot update campaign in '{current}' status. Only draft campaigns can be edited.",
                current,
            )

    db_log('info', 'campaigns', f'Campaign updated: {campaign_id}',
           {'fields': sorted(k for k in changes if k not in ('updated_by', 'updated_at')), 'admin': admin_email})
    return get_campaign(campaign_id)


def delete_campaign(campaign_id):
    """Delete a draft or cancelled campaign together with its assets and batches"""
    with Database.connect(_db_path()) as conn:
        row = _require_campaign_row(conn, campaign_id)
        status = row['status']
        if status not in DELETABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot delete campaign in '{status}' status. Only draft or cancelled campaigns can be deleted.",
                status,
            )

        conn.execute(f'DELETE FROM {ASSETS} WHERE campaign_id = ?', (campaign_id,))
        conn.execute(f'DELETE FROM {BATCHES} WHERE campaign_id = ?', (campaign_id,))
        cursor = conn.execute(
            f'DELETE FROM {CAMPAIGNS} WHERE id = ? AND status = ?', (campaign_id, status)
        )
        if cursor.rowcount == 0:
            current = _require_campaign_row(conn, campaign_id)['status']
            raise InvalidTransition(
                f"Cannot delete campaign in '{current}' status. Only draft or cancelled campaigns can be deleted.",
                current,
            )

    db_log('info', 'campaigns', f"Campaign deleted: {row['title']}", {'campaign_id': campaign_id})
    return True


def duplicate_title(title):
    """Append the copy suffix, truncating so the result fits the title limit"""
    max_base = MAX_TITLE_LENGTH - len(DUPLICATE_SUFFIX)
    return f'{title[:max_base]}{DUPLICATE_SUFFIX}'


def duplicate_campaign(campaign_id, admin_email):
    """Copy a campaign (any status) and its assets into a new draft"""
    new_id = str(uuid.uuid4())
    now = _now()

    with Database.connect(_db_path()) as conn:
        source = _require_campaign_row(conn, campaign_id)

        conn.execute(f'''
            INSERT INTO {CAMPAIGNS}
            (id, title, description, status, audience_source, user_notification_preferences,
             filter_tree, daily_send_limit, start_at, end_at, created_by, updated_by, created_at, updated_at)
            VALUES (?, ?, ?, 'draft', ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            new_id, duplicate_title(source['title']), source['description'], source['audience_source'],
            source['user_notification_preferences'], source['filter_tree'], source['daily_send_limit'],
            source['start_at'], source['end_at'], admin_email, admin_email, now, now,
        ))

        assets = conn.execute(f'SELECT * FROM {ASSETS} WHERE campaign_id = ?', (campaign_id,)).fetchall()
        for asset in assets:
            conn.execute(f'''
                INSERT INTO {ASSETS}
                (id, campaign_id, channel, language, subject, html_body, text_body, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                str(uuid.uuid4()), new_id, asset['channel'], asset['language'], asset['subject'],
                asset['html_body'], asset['text_body'], now, now,
            ))

    db_log('info', 'campaigns', f'Campaign duplicated: {campaign_id} -> {new_id}', {'admin': admin_email})
    return get_campaign(new_id)


# ===================
# STATE MACHINE
# ===================

def can_transition(current, target):
    return target in ALLOWED_TRANSITIONS.get(current, ())


def _transition_error(current, target):
    allowed = ', '.join(ALLOWED_TRANSITIONS.get(current, ())) or 'none'
    return InvalidTransition(
        f"Invalid transition: '{current}' -> '{target}'. Allowed: {allowed}",
        current,
        target,
    )


def transition_campaign(campaign_id, target, admin_email):
    """
    Move a campaign to `target` if the state machine allows it from the
    current status. The write only lands if the status is still the one
    that was validated; otherwise InvalidTransition is raised and nothing
    changes.
    """
    with Database.connect(_db_path()) as conn:
        current = _require_campaign_row(conn, campaign_id)['status']

    if not can_transition(current, target):
        db_log('warning', 'campaigns', f'Rejected transition {current} -> {target}',
               {'campaign_id': campaign_id, 'admin': admin_email})
        raise _transition_error(current, target)

    latest = None
    with Database.connect(_db_path()) as conn:
        cursor = conn.execute(
            f'UPDATE {CAMPAIGNS} SET status = ?, updated_by = ?, updated_at = ? WHERE id = ? AND status = ?',
            (target, admin_email, _now(), campaign_id, current),
        )
        if cursor.rowcount == 0:
            # Moved by another request between our read and write
            latest = _require_campaign_row(conn, campaign_id)['status']

    if latest is not None:
        db_log('warning', 'campaigns', f'Concurrent status change: expected {current}, found {latest}',
               {'campaign_id': campaign_id, 'target': target})
        raise _transition_error(latest, target)

    db_log('info', 'campaigns', f'Campaign {campaign_id}: {current} -> {target}', {'admin': admin_email})
    return get_campaign(campaign_id)


def activate_campaign(campaign_id, admin_email):
    return transition_campaign(campaign_id, 'active', admin_email)


def pause_campaign(campaign_id, admin_email):
    return transition_campaign(campaign_id, 'paused', admin_email)


def cancel_campaign(campaign_id, admin_email):
    return transition_campaign(campaign_id, 'cancelled', admin_email)


def complete_campaign(campaign_id, actor='notification-engine'):
    """System-only: the notification engine reports the audience is exhausted"""
    return transition_campaign(campaign_id, 'completed', actor)


# ===================
# ASSETS
# ===================

def upsert_asset(campaign_id, data, channel='email'):
    """
    Create or replace the asset for (campaign, channel, language).
    Assets can only change while the campaign is a draft.
    """
    now = _now()
    with Database.connect(_db_path()) as conn:
        status = _require_campaign_row(conn, campaign_id)['status']
        if status != 'draft':
            raise InvalidTransition(f"Cannot modify assets for campaign in '{status}' status.", status)

        conn.execute(f'''
            INSERT INTO {ASSETS}
            (id, campaign_id, channel, language, subject, html_body, text_body, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (campaign_id, channel, language) DO UPDATE SET
                subject = excluded.subject,
                html_body = excluded.html_body,
                text_body = excluded.text_body,
                updated_at = excluded.updated_at
        ''', (
            str(uuid.uuid4()), campaign_id, channel, data['language'], data['subject'],
            data['html_body'], data['text_body'], now, now,
        ))

        row = conn.execute(
            f'SELECT * FROM {ASSETS} WHERE campaign_id = ? AND channel = ? AND language = ?',
            (campaign_id, channel, data['language']),
        ).fetchone()

    db_log('info', 'campaigns', f"Asset saved: {campaign_id} [{data['language']}]")
    return _asset_to_dict(row)


def delete_asset(campaign_id, language, channel='email'):
    """Remove one language's asset from a draft campaign"""
    with Database.connect(_db_path()) as conn:
        status = _require_campaign_row(conn, campaign_id)['status']
        if status != 'draft':
            raise InvalidTransition(f"Cannot delete assets for campaign in '{status}' status.", status)

        cursor = conn.execute(
            f'DELETE FROM {ASSETS} WHERE campaign_id = ? AND channel = ? AND language = ?',
            (campaign_id, channel, language),
        )
        if cursor.rowcount == 0:
            raise NotFound('Asset not found')

    db_log('info', 'campaigns', f'Asset deleted: {campaign_id} [{language}]')
    return True


# ===================
# BATCH LEDGER
# ===================

def record_batch(campaign_id, report):
    """
    Append one batch record reported by the notification engine.

    Args:
        campaign_id (str): campaign the batch belongs to
        report (dict): snake_case fields: status, requested_by, started_at,
            completed_at, stats, asset_snapshot_hash, sample_send
    """
    batch_id = str(uuid.uuid4())
    stats = report.get('stats') or {}

    with Database.connect(_db_path()) as conn:
        _require_campaign_row(conn, campaign_id)
        conn.execute(f'''
            INSERT INTO {BATCHES}
            (id, campaign_id, status, requested_by, requested_at, started_at, completed_at,
             stats, asset_snapshot_hash, sample_send)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            batch_id, campaign_id, report.get('status', 'completed'), report.get('requested_by'), _now(),
            _to_storage('started_at', report.get('started_at')),
            _to_storage('completed_at', report.get('completed_at')),
            json.dumps(stats), report.get('asset_snapshot_hash'),
            1 if report.get('sample_send') else 0,
        ))
        row = conn.execute(f'SELECT * FROM {BATCHES} WHERE id = ?', (batch_id,)).fetchone()

    db_log('info', 'campaigns', f'Batch recorded for campaign {campaign_id}',
           {'batch_id': batch_id, 'status': report.get('status'), 'stats': stats})
    return _batch_to_dict(row)


def get_campaign_progress(campaign_id):
    """Sum the non-sample batch stats; recomputed on every call"""
    progress = {'sent': 0, 'failed': 0, 'skipped': 0, 'queued': 0, 'total': 0}

    with Database.connect(_db_path()) as conn:
        _require_campaign_row(conn, campaign_id)
        rows = conn.execute(
            f'SELECT stats FROM {BATCHES} WHERE campaign_id = ? AND sample_send = 0', (campaign_id,)
        ).fetchall()

    for row in rows:
        stats = json.loads(row['stats']) if row['stats'] else {}
        for key in ('sent', 'failed', 'skipped', 'queued'):
            progress[key] += int(stats.get(key) or 0)

    progress['total'] = progress['sent'] + progress['failed'] + progress['skipped'] + progress['queued']
    return progress


def get_batch_history(campaign_id, page=1, limit=20):
    """Non-sample batches, newest first"""
    offset = (page - 1) * limit
    with Database.connect(_db_path()) as conn:
        _require_campaign_row(conn, campaign_id)
        total = conn.execute(
            f'SELECT COUNT(*) FROM {BATCHES} WHERE campaign_id = ? AND sample_send = 0', (campaign_id,)
        ).fetchone()[0]
        rows = conn.execute(f'''
            SELECT * FROM {BATCHES}
            WHERE campaign_id = ? AND sample_send = 0
            ORDER BY requested_at DESC, rowid DESC
            LIMIT ? OFFSET ?
        ''', (campaign_id, limit, offset)).fetchall()

    return {
        'batches': [_batch_to_dict(row) for row in rows],
        'total': total,
        'page': page,
        'limit': limit,
    }

"""
Audience Resolution
===================

Counts how many recipients a campaign would reach. Leads and platform
users (authors) are read from the audience DB (AUDIENCE_DB), mapped to
plain records and run through the filter tree evaluator.
"""

import logging

from taleadmin.core import Config, Database

from .filters import LEAD_FIELDS, USER_FIELDS, matches

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_PREFERENCES = ('news', 'inspiration')

# Leads in these states must never be mailed
EXCLUDED_LEAD_STATUSES = ('unsub', 'hard_bounce')


def init_audience_db():
    """
    Create the leads and authors tables if missing. In production the
    platform owns these; this keeps local and test databases usable.
    """
    db_path = Database.audience_path()
    Database.ensure_dir(db_path)

    with Database.connect(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {Config.LEADS_TABLE} (
                id TEXT PRIMARY KEY,
                name TEXT,
                email TEXT NOT NULL UNIQUE,
                language TEXT,
                email_status TEXT NOT NULL DEFAULT 'ready',
                last_email_sent_at TEXT
            )
        ''')
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {Config.AUTHORS_TABLE} (
                author_id TEXT PRIMARY KEY,
                email TEXT NOT NULL,
                created_at TEXT,
                last_login_at TEXT,
                preferred_locale TEXT,
                notification_preference TEXT,
                gender TEXT,
                literary_age TEXT
            )
        ''')

    logger.info("Audience tables created/verified successfully")


def lead_record(row):
    return {
        'language': row['language'],
        'emailStatus': row['email_status'],
        'lastEmailSentAt': row['last_email_sent_at'],
    }


def user_record(row):
    return {
        'createdAt': row['created_at'],
        'lastLoginAt': row['last_login_at'],
        'preferredLocale': row['preferred_locale'],
        'notificationPreference': row['notification_preference'],
        'gender': row['gender'],
        'literaryAge': row['literary_age'],
    }


def count_leads(filter_tree=None):
    """Leads that are still mailable and match the tree"""
    placeholders = ', '.join('?' for _ in EXCLUDED_LEAD_STATUSES)
    query = f'''
        SELECT language, email_status, last_email_sent_at
        FROM {Config.LEADS_TABLE}
        WHERE email_status NOT IN ({placeholders})
    '''
    total = 0
    with Database.connect(Database.audience_path()) as conn:
        for row in conn.execute(query, EXCLUDED_LEAD_STATUSES):
            if matches(filter_tree, lead_record(row), LEAD_FIELDS):
                total += 1
    return total


def count_users(filter_tree=None, notification_preferences=None):
    """Authors whose notification preference is opted in and who match the tree"""
    preferences = list(notification_preferences or DEFAULT_NOTIFICATION_PREFERENCES)
    placeholders = ', '.join('?' for _ in preferences)
    query = f'''
        SELECT created_at, last_login_at, preferred_locale, notification_preference, gender, literary_age
        FROM {Config.AUTHORS_TABLE}
        WHERE notification_preference IN ({placeholders})
    '''
    total = 0
    with Database.connect(Database.audience_path()) as conn:
        for row in conn.execute(query, preferences):
            if matches(filter_tree, user_record(row), USER_FIELDS):
                total += 1
    return total


def estimate_audience(audience_source, filter_tree=None, user_notification_preferences=None):
    """
    Estimate the audience for a source ('users', 'leads' or 'both').

    Returns:
        dict: {'users': int, 'leads': int, 'total': int}
    """
    users = leads = 0
    if audience_source in ('users', 'both'):
        users = count_users(filter_tree, user_notification_preferences)
    if audience_source in ('leads', 'both'):
        leads = count_leads(filter_tree)

    logger.debug(f"Audience estimate [{audience_source}]: users={users} leads={leads}")
    return {'users': users, 'leads': leads, 'total': users + leads}


def estimate_for_campaign(campaign, overrides=None):
    """
    Estimate using a stored campaign, optionally replaced field by field
    with draft values. Only keys present in `overrides` are applied.

    Args:
        campaign (dict): campaign as returned by models.get_campaign
        overrides (dict): camelCase keys audienceSource, filterTree,
            userNotificationPreferences
    """
    settings = {
        'audienceSource': campaign.get('audienceSource'),
        'filterTree': campaign.get('filterTree'),
        'userNotificationPreferences': campaign.get('userNotificationPreferences'),
    }
    for key, value in (overrides or {}).items():
        if key in settings:
            settings[key] = value

    return estimate_audience(
        settings['audienceSource'],
        settings['filterTree'],
        settings['userNotificationPreferences'],
    )

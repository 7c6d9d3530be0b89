"""
Campaign storage and state machine tests, exercised through the models
layer inside an app context.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from taleadmin.core import Config, Database, InvalidTransition, NotFound
from taleadmin.modules.campaigns import models
from taleadmin.modules.campaigns.models import (
    ALLOWED_TRANSITIONS, activate_campaign, cancel_campaign, complete_campaign, create_campaign,
    delete_asset, delete_campaign, duplicate_campaign, duplicate_title, get_batch_history,
    get_campaign, get_campaign_progress, list_campaigns, pause_campaign, record_batch,
    transition_campaign, update_campaign, upsert_asset,
)

from conftest import ADMIN_EMAIL


def new_campaign(title="Spring stories", **extra):
    data = {"title": title, "audience_source": "leads"}
    data.update(extra)
    return create_campaign(data, ADMIN_EMAIL)


def asset(language="en-US", subject="Hello"):
    return {"language": language, "subject": subject, "html_body": "<p>Hi</p>", "text_body": "Hi"}


def force_status(campaign_id, status):
    with Database.connect(Database.backoffice_path()) as conn:
        conn.execute(f"UPDATE {Config.CAMPAIGNS_TABLE} SET status = ? WHERE id = ?", (status, campaign_id))


def row_count(table, campaign_id):
    with Database.connect(Database.backoffice_path()) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE campaign_id = ?", (campaign_id,)).fetchone()[0]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def test_create_starts_as_draft(app_ctx):
    campaign = new_campaign(
        description="For lapsed leads",
        filter_tree={"logic": "and", "conditions": [{"field": "language", "operator": "eq", "value": "pt-PT"}]},
        user_notification_preferences=["news"],
        daily_send_limit=500,
    )

    assert campaign["status"] == "draft"
    assert campaign["createdBy"] == ADMIN_EMAIL
    assert campaign["updatedBy"] == ADMIN_EMAIL
    assert campaign["filterTree"]["conditions"][0]["value"] == "pt-PT"
    assert campaign["userNotificationPreferences"] == ["news"]
    assert campaign["dailySendLimit"] == 500
    assert campaign["assets"] == []


def test_get_missing_campaign_returns_none(app_ctx):
    assert get_campaign("does-not-exist") is None


def test_list_is_paginated_newest_first(app_ctx):
    first = new_campaign("First")
    second = new_campaign("Second")
    third = new_campaign("Third")
    cancel_campaign(first["id"], ADMIN_EMAIL)

    page = list_campaigns(page=1, limit=2)
    assert page["total"] == 3
    assert [c["id"] for c in page["campaigns"]] == [third["id"], second["id"]]

    page = list_campaigns(page=2, limit=2)
    assert [c["id"] for c in page["campaigns"]] == [first["id"]]

    cancelled = list_campaigns(status="cancelled")
    assert cancelled["total"] == 1
    assert cancelled["campaigns"][0]["id"] == first["id"]


def test_partial_update_only_touches_given_fields(app_ctx):
    campaign = new_campaign(description="Keep me", daily_send_limit=100)

    updated = update_campaign(campaign["id"], {"title": "Renamed", "daily_send_limit": None}, "rui@mythoria.pt")

    assert updated["title"] == "Renamed"
    assert updated["description"] == "Keep me"
    assert updated["dailySendLimit"] is None
    assert updated["updatedBy"] == "rui@mythoria.pt"


def test_update_rejected_outside_draft(app_ctx):
    campaign = new_campaign()
    activate_campaign(campaign["id"], ADMIN_EMAIL)

    with pytest.raises(InvalidTransition) as exc:
        update_campaign(campaign["id"], {"title": "Nope"}, ADMIN_EMAIL)

    assert exc.value.current_status == "active"
    assert get_campaign(campaign["id"])["title"] == "Spring stories"


def test_update_missing_campaign(app_ctx):
    with pytest.raises(NotFound):
        update_campaign("missing", {"title": "x"}, ADMIN_EMAIL)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status", ["draft", "cancelled"])
def test_delete_cascades(app_ctx, status):
    campaign = new_campaign()
    upsert_asset(campaign["id"], asset("en-US"))
    upsert_asset(campaign["id"], asset("pt-PT"))
    record_batch(campaign["id"], {"status": "completed", "stats": {"sent": 3}})
    force_status(campaign["id"], status)

    assert delete_campaign(campaign["id"]) is True

    assert get_campaign(campaign["id"]) is None
    assert row_count(Config.CAMPAIGN_ASSETS_TABLE, campaign["id"]) == 0
    assert row_count(Config.CAMPAIGN_BATCHES_TABLE, campaign["id"]) == 0


@pytest.mark.parametrize("status", ["active", "paused", "completed"])
def test_delete_rejected_for_live_or_finished(app_ctx, status):
    campaign = new_campaign()
    upsert_asset(campaign["id"], asset())
    force_status(campaign["id"], status)

    with pytest.raises(InvalidTransition):
        delete_campaign(campaign["id"])

    stored = get_campaign(campaign["id"])
    assert stored is not None
    assert len(stored["assets"]) == 1


# ---------------------------------------------------------------------------
# Duplicate
# ---------------------------------------------------------------------------

def test_duplicate_copies_assets_into_new_draft(app_ctx):
    campaign = new_campaign(user_notification_preferences=["inspiration"])
    upsert_asset(campaign["id"], asset("en-US"))
    upsert_asset(campaign["id"], asset("pt-PT", "Olá"))
    activate_campaign(campaign["id"], ADMIN_EMAIL)

    copy = duplicate_campaign(campaign["id"], "rui@mythoria.pt")

    assert copy["id"] != campaign["id"]
    assert copy["status"] == "draft"
    assert copy["title"] == "Spring stories - copy"
    assert copy["createdBy"] == "rui@mythoria.pt"
    assert copy["userNotificationPreferences"] == ["inspiration"]
    assert [a["language"] for a in copy["assets"]] == ["en-US", "pt-PT"]
    assert copy["assets"][1]["subject"] == "Olá"


def test_duplicate_title_stays_within_limit():
    title = duplicate_title("x" * 255)
    assert len(title) == 255
    assert title.endswith(" - copy")


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def test_valid_transitions(app_ctx):
    campaign = new_campaign()
    assert campaign["updatedBy"] == ADMIN_EMAIL
    called_at = datetime.now(timezone.utc)

    active = activate_campaign(campaign["id"], "rui@mythoria.pt")
    assert active["status"] == "active"
    assert active["updatedBy"] == "rui@mythoria.pt"
    assert datetime.fromisoformat(active["updatedAt"]) >= called_at
    assert active["createdAt"] == campaign["createdAt"]

    assert pause_campaign(campaign["id"], ADMIN_EMAIL)["status"] == "paused"
    assert activate_campaign(campaign["id"], ADMIN_EMAIL)["status"] == "active"
    assert cancel_campaign(campaign["id"], ADMIN_EMAIL)["status"] == "cancelled"


@pytest.mark.parametrize("start", ["draft", "active", "paused"])
def test_cancel_from_any_live_state(app_ctx, start):
    campaign = new_campaign()
    force_status(campaign["id"], start)
    assert cancel_campaign(campaign["id"], ADMIN_EMAIL)["status"] == "cancelled"


@pytest.mark.parametrize("start, target", [
    ("completed", "active"),
    ("completed", "cancelled"),
    ("cancelled", "paused"),
    ("cancelled", "active"),
    ("draft", "paused"),
    ("draft", "completed"),
    ("paused", "paused"),
])
def test_invalid_transitions_leave_state_unchanged(app_ctx, start, target):
    campaign = new_campaign()
    force_status(campaign["id"], start)
    before = get_campaign(campaign["id"])

    with pytest.raises(InvalidTransition) as exc:
        transition_campaign(campaign["id"], target, "rui@mythoria.pt")

    assert exc.value.status == 409
    assert exc.value.to_dict()["details"] == {"currentStatus": start, "targetStatus": target}
    after = get_campaign(campaign["id"])
    assert after["status"] == start
    assert after["updatedBy"] == before["updatedBy"]
    assert after["updatedAt"] == before["updatedAt"]


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS["completed"] == ()
    assert ALLOWED_TRANSITIONS["cancelled"] == ()


def test_complete_is_system_path(app_ctx):
    campaign = new_campaign()
    activate_campaign(campaign["id"], ADMIN_EMAIL)

    completed = complete_campaign(campaign["id"])
    assert completed["status"] == "completed"
    assert completed["updatedBy"] == "notification-engine"


def test_transition_missing_campaign(app_ctx):
    with pytest.raises(NotFound):
        activate_campaign("missing", ADMIN_EMAIL)


def test_concurrent_change_is_not_overwritten(app_ctx):
    """
    A request that validated 'draft' must not activate a campaign another
    request cancelled in the meantime.
    """
    campaign = new_campaign()
    cancel_campaign(campaign["id"], ADMIN_EMAIL)

    real_lookup = models._require_campaign_row
    calls = []

    def stale_first_read(conn, campaign_id):
        calls.append(campaign_id)
        if len(calls) == 1:
            return {"status": "draft"}
        return real_lookup(conn, campaign_id)

    with patch.object(models, "_require_campaign_row", side_effect=stale_first_read):
        with pytest.raises(InvalidTransition) as exc:
            activate_campaign(campaign["id"], ADMIN_EMAIL)

    assert exc.value.current_status == "cancelled"
    assert get_campaign(campaign["id"])["status"] == "cancelled"


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

def test_asset_upsert_updates_instead_of_duplicating(app_ctx):
    campaign = new_campaign()
    first = upsert_asset(campaign["id"], asset("en-US", "v1"))
    second = upsert_asset(campaign["id"], asset("en-US", "v2"))

    assert first["id"] == second["id"]
    assert second["subject"] == "v2"
    assert row_count(Config.CAMPAIGN_ASSETS_TABLE, campaign["id"]) == 1


def test_asset_changes_are_draft_only(app_ctx):
    campaign = new_campaign()
    upsert_asset(campaign["id"], asset())
    activate_campaign(campaign["id"], ADMIN_EMAIL)

    with pytest.raises(InvalidTransition):
        upsert_asset(campaign["id"], asset(subject="changed"))
    with pytest.raises(InvalidTransition):
        delete_asset(campaign["id"], "en-US")

    assert get_campaign(campaign["id"])["assets"][0]["subject"] == "Hello"


def test_delete_missing_asset(app_ctx):
    campaign = new_campaign()
    with pytest.raises(NotFound):
        delete_asset(campaign["id"], "fr-FR")


# ---------------------------------------------------------------------------
# Batch ledger & progress
# ---------------------------------------------------------------------------

def test_progress_sums_batches(app_ctx):
    campaign = new_campaign()
    record_batch(campaign["id"], {"status": "completed", "stats": {"processed": 13, "sent": 10, "failed": 2, "skipped": 1}})
    record_batch(campaign["id"], {"status": "completed", "stats": {"processed": 5, "sent": 5, "failed": 0, "skipped": 0}})

    progress = get_campaign_progress(campaign["id"])

    assert progress == {"sent": 15, "failed": 2, "skipped": 1, "queued": 0, "total": 18}


def test_progress_ignores_sample_sends(app_ctx):
    campaign = new_campaign()
    record_batch(campaign["id"], {"status": "completed", "stats": {"sent": 4}})
    record_batch(campaign["id"], {"status": "completed", "stats": {"sent": 1}, "sample_send": True})

    assert get_campaign_progress(campaign["id"])["sent"] == 4
    assert get_batch_history(campaign["id"])["total"] == 1


def test_progress_of_campaign_without_batches(app_ctx):
    campaign = new_campaign()
    assert get_campaign_progress(campaign["id"]) == {"sent": 0, "failed": 0, "skipped": 0, "queued": 0, "total": 0}


def test_batch_history_newest_first(app_ctx):
    campaign = new_campaign()
    older = record_batch(campaign["id"], {"status": "failed", "requested_by": "scheduler"})
    newer = record_batch(campaign["id"], {"status": "completed", "stats": {"sent": 2}})

    history = get_batch_history(campaign["id"], page=1, limit=10)

    assert [b["id"] for b in history["batches"]] == [newer["id"], older["id"]]
    assert history["batches"][1]["requestedBy"] == "scheduler"
    assert history["batches"][0]["sampleSend"] is False


def test_record_batch_for_missing_campaign(app_ctx):
    with pytest.raises(NotFound):
        record_batch("missing", {"status": "completed"})

"""
Campaign Request Schemas
========================

pydantic models for every JSON body the campaign routes accept.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

AudienceSource = Literal['users', 'leads', 'both']
NotificationPreference = Literal['essential', 'inspiration', 'news']
CampaignStatus = Literal['draft', 'active', 'paused', 'completed', 'cancelled']


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Filter tree
# ---------------------------------------------------------------------------

class FilterCondition(BaseModel):
    field: str = Field(min_length=1)
    operator: Literal['eq', 'ne', 'gt', 'gte', 'lt', 'lte', 'between', 'in', 'not_in', 'is_null']
    value: Union[bool, int, float, str, List[Union[int, float, str]], None] = None


class FilterTree(BaseModel):
    logic: Literal['and', 'or']
    conditions: List[Union['FilterTree', FilterCondition]]


FilterTree.model_rebuild()

# A tree root may be a single condition or a group
FilterNode = Union[FilterTree, FilterCondition]


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------

class CampaignCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    audience_source: AudienceSource
    user_notification_preferences: Optional[List[NotificationPreference]] = Field(default=None, min_length=1)
    filter_tree: Optional[FilterNode] = None
    daily_send_limit: Optional[int] = Field(default=None, ge=1)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


class CampaignUpdate(CamelModel):
    """Partial update: only the keys present in the body are applied"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    audience_source: Optional[AudienceSource] = None
    user_notification_preferences: Optional[List[NotificationPreference]] = Field(default=None, min_length=1)
    filter_tree: Optional[FilterNode] = None
    daily_send_limit: Optional[int] = Field(default=None, ge=1)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator('title', 'audience_source')
    @classmethod
    def not_null(cls, value):
        # Runs only for keys present in the body
        if value is None:
            raise ValueError('may be omitted but not null')
        return value


class CampaignAssetInput(CamelModel):
    language: str = Field(min_length=2, max_length=10)
    subject: str = Field(min_length=1, max_length=1000)
    html_body: str = Field(min_length=1)
    text_body: str = Field(min_length=1)


class AudienceEstimate(CamelModel):
    """Draft overrides for a live audience-size preview"""
    audience_source: Optional[AudienceSource] = None
    user_notification_preferences: Optional[List[NotificationPreference]] = None
    filter_tree: Optional[FilterNode] = None


class SampleSend(CamelModel):
    locale: str = Field(min_length=2, max_length=10)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    variables: Optional[Dict[str, Any]] = None


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    status: Optional[CampaignStatus] = None


# ---------------------------------------------------------------------------
# Batch ledger (reported by the notification engine)
# ---------------------------------------------------------------------------

class BatchStats(CamelModel):
    processed: int = Field(default=0, ge=0)
    sent: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    queued: int = Field(default=0, ge=0)


class BatchReport(CamelModel):
    status: Literal['queued', 'running', 'completed', 'failed'] = 'completed'
    requested_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stats: BatchStats = Field(default_factory=BatchStats)
    asset_snapshot_hash: Optional[str] = Field(default=None, max_length=128)
    sample_send: bool = False


# ---------------------------------------------------------------------------
# AI asset generation
# ---------------------------------------------------------------------------

class GenerateAssets(CamelModel):
    source_locale: str = Field(min_length=2, max_length=10)
    subject: str = Field(min_length=1, max_length=1000)
    body_description: str = Field(min_length=1, max_length=10000)
    template_name: str = Field(default='default', min_length=1)

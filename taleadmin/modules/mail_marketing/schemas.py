from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# 24h clock, e.g. 09:00 or 21:30
TIME_OF_DAY_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


class MailMarketingConfigUpdate(BaseModel):
    """Fields an admin may change on the engine's global config"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')

    paused: Optional[bool] = None
    batch_size: Optional[int] = Field(default=None, ge=10, le=500)
    send_window_start: Optional[str] = Field(default=None, pattern=TIME_OF_DAY_PATTERN)
    send_window_end: Optional[str] = Field(default=None, pattern=TIME_OF_DAY_PATTERN)
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=64)

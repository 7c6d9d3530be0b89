"""
TaleAdmin Core
==============

Core utilities and shared functionality for TaleAdmin modules.
"""

from .config import Config, get_config_value, get_allowed_domains
from .database import Database
from .errors import (
    AdminError, Unauthorized, Forbidden, NotFound, InvalidTransition,
    ValidationFailed, UpstreamFailure,
)
from .logging_service import LoggingService, db_log, logger
from .validation import parse, present_fields
from .service_client import ServiceClient, ServiceResult
from .notification_engine import NotificationEngineClient, NotificationEngineConfig, get_engine_client
from .story_workflow import StoryWorkflowClient, StoryWorkflowConfig, get_workflow_client

__all__ = [
    'Config', 'get_config_value', 'get_allowed_domains', 'Database',
    'AdminError', 'Unauthorized', 'Forbidden', 'NotFound', 'InvalidTransition',
    'ValidationFailed', 'UpstreamFailure',
    'LoggingService', 'db_log', 'logger',
    'ServiceClient', 'ServiceResult',
    'NotificationEngineClient', 'NotificationEngineConfig', 'get_engine_client',
    'StoryWorkflowClient', 'StoryWorkflowConfig', 'get_workflow_client',
    'parse', 'present_fields',
]

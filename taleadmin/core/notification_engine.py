"""
Notification Engine Client
==========================

Narrow HTTP client for the external service that performs the actual email
delivery, batching and pacing. The admin service only shapes requests and
passes responses through: there is no retry logic here.

Every call goes through `NotificationEngineClient.send`, so tests (or another
transport) can replace a single method.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from .service_client import ServiceClient, ServiceResult


@dataclass(frozen=True)
class NotificationEngineConfig:
    """Connection settings, built once per app from its config"""
    base_url: Optional[str]
    api_key: Optional[str] = None
    timeout: float = 30.0

    @classmethod
    def from_app(cls, app):
        base_url = app.config.get('NOTIFICATION_ENGINE_URL') or None
        return cls(
            base_url=base_url.rstrip('/') if base_url else None,
            api_key=app.config.get('NOTIFICATION_ENGINE_API_KEY') or '',
            timeout=float(app.config.get('NOTIFICATION_ENGINE_TIMEOUT', 30)),
        )


class NotificationEngineClient(ServiceClient):
    """Proxy for the notification engine's /internal API"""

    service_name = 'Notification engine'

    # ------------------------------------------------------------------
    # Campaign sends
    # ------------------------------------------------------------------

    def trigger_campaign_batch(self, campaign_id, requested_by, idempotency_key=None):
        """Ask the engine to run the next batch of one campaign"""
        key = idempotency_key or str(uuid.uuid4())
        return self.send(
            f'/internal/campaigns/{campaign_id}/send-batch',
            {'requestedBy': requested_by},
            headers={'Idempotency-Key': key},
        )

    def send_sample(self, campaign_id, locale, email, requested_by, variables=None):
        payload = {'locale': locale, 'email': email, 'requestedBy': requested_by}
        if variables is not None:
            payload['variables'] = variables
        return self.send(f'/internal/campaigns/{campaign_id}/send-sample', payload)

    # ------------------------------------------------------------------
    # Global mail marketing settings
    # ------------------------------------------------------------------

    def get_mail_marketing_config(self):
        return _unwrap(self.send('/internal/mail-marketing/config', method='GET'))

    def update_mail_marketing_config(self, updates, updated_by):
        payload = dict(updates)
        payload['updatedBy'] = updated_by
        return _unwrap(self.send('/internal/mail-marketing/config', payload, method='PUT'))

    def get_mail_marketing_status(self):
        return self.send('/internal/mail-marketing/status', method='GET')

    def trigger_mail_marketing_batch(self, requested_by, idempotency_key=None):
        key = idempotency_key or str(uuid.uuid4())
        return self.send(
            '/internal/mail-marketing/send-batch',
            {'requestedBy': requested_by},
            headers={'Idempotency-Key': key},
        )


def _unwrap(result: ServiceResult) -> ServiceResult:
    """Strip the engine's {success, data} envelope when present"""
    data = result.data
    if isinstance(data, dict) and data.get('data') is not None:
        return ServiceResult(result.status_code, data['data'])
    return result


def get_engine_client() -> NotificationEngineClient:
    """The client built for the current app by TaleAdmin"""
    from flask import current_app
    client = current_app.extensions.get('notification_engine')
    if client is None:
        client = NotificationEngineClient(NotificationEngineConfig.from_app(current_app))
        current_app.extensions['notification_engine'] = client
    return client

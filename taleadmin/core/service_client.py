"""
Internal Service Client
=======================

Shared transport for the back-end services the admin API proxies to (the
notification engine and the story generation workflow). Both speak JSON,
authenticate with an `x-api-key` header and have their errors passed back to
the admin UI verbatim.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    status_code: int
    data: Any


class ServiceClient:
    """
    Base class: subclasses set `service_name` and build their own config.

    Args:
        config: dataclass with base_url, api_key and timeout
        http: object with a requests-compatible `request` method (defaults to a Session)
    """

    service_name = 'Internal service'

    def __init__(self, config, http=None):
        self.config = config
        self.http = http or requests.Session()

    def send(self, path: str, payload: Optional[Dict[str, Any]] = None, method: str = 'POST',
             headers: Optional[Dict[str, str]] = None) -> ServiceResult:
        """
        Issue one request and return its status and JSON body.

        Raises:
            UpstreamFailure: service not configured (503), unreachable (502),
                or answered with a non-2xx status (that status, body verbatim)
        """
        name = self.service_name
        if not self.config.base_url:
            logger.error(f"{name} URL not configured")
            raise UpstreamFailure(503, {'error': f'{name} not configured'}, f'{name} not configured')

        request_headers = {'x-api-key': self.config.api_key or ''}
        if payload is not None:
            request_headers['Content-Type'] = 'application/json'
        if headers:
            request_headers.update(headers)

        url = f"{self.config.base_url}{path}"
        try:
            response = self.http.request(
                method,
                url,
                json=payload,
                headers=request_headers,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{name} unreachable [{method} {path}]: {e}")
            raise UpstreamFailure(502, {'error': f'{name} unreachable'}, f'{name} unreachable')

        try:
            data = response.json()
        except ValueError:
            data = None

        if not 200 <= response.status_code < 300:
            logger.error(f"{name} error [{method} {path}] {response.status_code}: {data}")
            raise UpstreamFailure(
                response.status_code,
                data if data is not None else {'error': f'{name} request failed'},
                f'{name} request failed',
            )

        return ServiceResult(response.status_code, data)

"""
Thin REST client for the invoicing backend API.
"""

import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when the backend answers with a non-2xx status or cannot be reached."""

    def __init__(self, status, reason='', message=''):
        self.status = status
        self.reason = reason
        self.message = message
        super().__init__(f"{status} {reason}".strip() if status is not None else reason)


class BackendClient:
    """
    Client for the backend REST API (customers, products, invoices,
    tax-definitions, settings).

    Every call sends and receives JSON. The Authorization header is passed in
    by the caller as-is, e.g. 'Bearer <token>'.

    Settings used:
    - BACKEND_URL: Base URL of the backend (default: http://localhost:3000)
    - BACKEND_TIMEOUT: Request timeout in seconds (default: 10)
    """

    def __init__(self, base_url=None, auth_header=None, timeout=None, session=None):
        self.base_url = (base_url or getattr(settings, 'BACKEND_URL', 'http://localhost:3000')).rstrip('/')
        self.auth_header = auth_header
        self.timeout = timeout or getattr(settings, 'BACKEND_TIMEOUT', 10)
        self.session = session or requests.Session()

    def get(self, path):
        return self._request('GET', path)

    def post(self, path, body=None):
        return self._request('POST', path, body=body if body is not None else {})

    def put(self, path, body=None):
        return self._request('PUT', path, body=body if body is not None else {})

    def patch(self, path, body=None):
        return self._request('PATCH', path, body=body if body is not None else {})

    def delete(self, path):
        """Delete a resource. Returns None for 204 or non-JSON responses."""
        response = self._send('DELETE', path)
        content_type = response.headers.get('content-type', '')
        if response.status_code == 204 or 'application/json' not in content_type:
            return None
        return response.json()

    def _headers(self):
        headers = {}
        if self.auth_header:
            headers['Authorization'] = self.auth_header
        return headers

    def _request(self, method, path, body=None):
        return self._send(method, path, body=body).json()

    def _send(self, method, path, body=None):
        url = f"{self.base_url}{path}"
        kwargs = {'headers': self._headers(), 'timeout': self.timeout}
        if body is not None:
            kwargs['json'] = body

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error("Backend %s %s failed: %s", method, path, e)
            raise BackendError(None, str(e)) from e

        if not response.ok:
            message = response.text or ''
            logger.warning("Backend %s %s returned %s", method, path, response.status_code)
            raise BackendError(response.status_code, response.reason or '', message)

        return response

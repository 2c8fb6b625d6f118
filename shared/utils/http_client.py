# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Traced HTTP client utilities.

Provides a requests.Session subclass that injects the current X-Request-ID
into all outbound requests, so callers don't need to forward it manually.

Usage:
    from shared.utils.http_client import traced_session

    session = traced_session()
    session.get("http://example.com/api")   # auto-injects X-Request-ID
"""

import requests

from shared.request_context import get_request_id


def _inject_request_id(headers: dict) -> dict:
    request_id = get_request_id()
    if request_id and "X-Request-ID" not in headers:
        headers["X-Request-ID"] = request_id
    return headers


class TracedSession(requests.Session):
    """A requests.Session subclass that auto-injects the request id header."""

    def request(self, method, url, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        kwargs["headers"] = _inject_request_id(headers)
        return super().request(method, url, **kwargs)


def traced_session() -> TracedSession:
    """Create a new requests session with automatic request id injection."""
    return TracedSession()

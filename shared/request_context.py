# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Request-scoped context shared by the logger and outbound HTTP clients.
"""

from contextvars import ContextVar
from typing import Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(request_id: Optional[str]) -> None:
    """Bind a request id to the current execution context."""
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()

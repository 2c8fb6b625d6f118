# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
HTTP middleware that tags every request with a short id and logs its duration.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request

from shared.request_context import set_request_id

# Health check paths that should skip logging to reduce overhead
HEALTH_CHECK_PATHS = {"/", "/health"}


def install_request_logging(app: FastAPI, logger: logging.Logger) -> None:
    """Register the request logging middleware on ``app``."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Middleware: Log request duration and source IP"""
        if request.url.path in HEALTH_CHECK_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        set_request_id(request_id)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            f"request : {request.method} {request.url.path} {request.query_params} {request_id} {client_ip}"
        )

        response = await call_next(request)

        process_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"response: {request.method} {request.url.path} {request_id} {client_ip} "
            f"{response.status_code} {process_time_ms:.0f}ms"
        )

        response.headers["X-Request-ID"] = request_id
        return response

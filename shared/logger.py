#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Common logging module, configures and provides logging functionality for the application.

Supports automatic request_id injection into log messages via ContextVar.
"""

import logging
import os
import sys

from shared.request_context import get_request_id


class RequestIdFilter(logging.Filter):
    """
    A logging filter that adds request_id to log records.

    This filter reads the request_id from the ContextVar set by set_request_id()
    and adds it to each log record, making it available in the log format string.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        record.request_id = request_id if request_id else "-"
        return True


class NonBlockingStreamHandler(logging.StreamHandler):
    """
    Custom stream handler that handles BlockingIOError gracefully
    """

    def emit(self, record):
        try:
            super().emit(record)
        except BlockingIOError:
            # Output pipe is full, drop the record
            pass


def setup_logger(
    name,
    level=logging.INFO,
    format="%(asctime)s - [%(request_id)s] - [in %(pathname)s:%(lineno)d] - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    include_request_id=True,
):
    """
    Configure and return a logger instance

    If environment variable LOG_LEVEL is set to DEBUG, force log level to DEBUG.

    Args:
        name: Logger name
        level: Logging level, default is INFO
        format: Log message format, default includes line number and request_id
        datefmt: Date format for timestamps
        include_request_id: Whether to include request_id in log format (default: True)

    Returns:
        logging.Logger: Configured logger instance
    """
    env_log_level = os.environ.get("LOG_LEVEL")
    if env_log_level and env_log_level.upper() == "DEBUG":
        level = logging.DEBUG

    logger = logging.getLogger(name)

    # Logger already configured, just update level and return
    if logger.handlers:
        logger.setLevel(level)
        return logger

    logger.setLevel(level)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    if not include_request_id:
        format = format.replace("[%(request_id)s] - ", "")

    console_handler = NonBlockingStreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(format, datefmt))
    if include_request_id:
        console_handler.addFilter(RequestIdFilter())

    logger.addHandler(console_handler)

    return logger

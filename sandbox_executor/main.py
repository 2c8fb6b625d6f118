#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Main entry module, starts the sandbox executor FastAPI server
Supports two startup modes:
1. Run directly: python -m sandbox_executor.main
2. Use uvicorn: uvicorn sandbox_executor.main:app --host 0.0.0.0 --port 3000
"""

import uvicorn

from sandbox_executor.api.routes import app
from sandbox_executor.config.config import EXECUTOR_HOST, EXECUTOR_PORT
from shared.logger import setup_logger

logger = setup_logger(__name__)

__all__ = ["app", "main"]


def main():
    try:
        logger.info(f"Starting sandbox executor on {EXECUTOR_HOST}:{EXECUTOR_PORT}")
        uvicorn.run(app, host=EXECUTOR_HOST, port=EXECUTOR_PORT)
    except Exception as e:
        logger.error(f"Service startup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    exit(main())

#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Main entry module, starts the fleet FastAPI server
Supports two startup modes:
1. Run directly: python -m fleet_manager.main
2. Use uvicorn: uvicorn fleet_manager.main:app --host 0.0.0.0 --port 8080
"""

import uvicorn

from fleet_manager.config.config import FLEET_HOST, FLEET_PORT
from fleet_manager.routers.routers import app
from shared.logger import setup_logger

logger = setup_logger(__name__)

__all__ = ["app", "main"]


def main():
    """
    Main function, starts the FastAPI server
    Used when running the script directly
    """
    try:
        logger.info("Starting fleet FastAPI server...")
        uvicorn.run(app, host=FLEET_HOST, port=FLEET_PORT)
    except Exception as e:
        logger.error(f"Service startup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    exit(main())

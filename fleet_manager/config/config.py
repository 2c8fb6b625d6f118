#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Configuration module, stores application configuration parameters
"""

import os

# Compute provider (Fly Machines API)
FLY_API_HOSTNAME = os.getenv("FLY_API_HOSTNAME", "https://api.machines.dev")
FLY_API_TOKEN = os.getenv("FLY_API_TOKEN", "")
FLY_ORG_SLUG = os.getenv("FLY_ORG_SLUG", "personal")
FLY_REGISTRY = os.getenv("FLY_REGISTRY", "registry.fly.io")
FLY_CLI = os.getenv("FLY_CLI", "fly")
DOCKER_CLI = os.getenv("DOCKER_CLI", "docker")
API_TIMEOUT = int(os.getenv("API_TIMEOUT", 30))  # Provider request timeout (seconds)

# Images pushed into each workspace's registry namespace
APPLICATION_SOURCE_IMAGE = os.getenv("APPLICATION_SOURCE_IMAGE", "integramind/app")
EXECUTOR_SOURCE_IMAGE = os.getenv("EXECUTOR_SOURCE_IMAGE", "integramind/executor")
APPLICATION_IMAGE_TAG = "latest"
EXECUTOR_IMAGE_TAG = "executor"

# Machine sizing
MACHINE_CPU_KIND = os.getenv("MACHINE_CPU_KIND", "shared")
EXECUTOR_MACHINE_CPUS = int(os.getenv("EXECUTOR_MACHINE_CPUS", 1))
EXECUTOR_MACHINE_MEMORY_MB = int(os.getenv("EXECUTOR_MACHINE_MEMORY_MB", 1024))
APPLICATION_MACHINE_CPUS = int(os.getenv("APPLICATION_MACHINE_CPUS", 1))
APPLICATION_MACHINE_MEMORY_MB = int(os.getenv("APPLICATION_MACHINE_MEMORY_MB", 256))
MACHINE_INTERNAL_PORT = int(os.getenv("MACHINE_INTERNAL_PORT", 3000))

# HTTP server
FLEET_HOST = os.getenv("FLEET_HOST", "0.0.0.0")
FLEET_PORT = int(os.getenv("FLEET_PORT", 8080))

#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
API routes module, defines the executor FastAPI routes running inside each
workspace machine
"""

from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sandbox_executor.api.models import ExecuteRequest, ExecuteResponse, ScriptRequest
from sandbox_executor.engine.sandbox_engine import SandboxEngine
from sandbox_executor.engine.units import CodeModule, Script
from shared.errors import SandboxError, ValidationError
from shared.logger import setup_logger
from shared.request_logging import install_request_logging

logger = setup_logger(__name__)

app = FastAPI(
    title="Sandbox Executor API",
    description="Runs generated code in disposable, memory-bounded sandboxes",
)
install_request_logging(app, logger)

_engine: Optional[SandboxEngine] = None


def get_sandbox_engine() -> SandboxEngine:
    global _engine
    if _engine is None:
        _engine = SandboxEngine()
    return _engine


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


@app.exception_handler(ValidationError)
async def engine_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"message": exc.message, "error": exc.to_dict()})


@app.exception_handler(SandboxError)
async def sandbox_error_handler(request: Request, exc: SandboxError):
    logger.warning(f"Sandbox failure on {request.url.path}: [{exc.code}] {exc.message}")
    return JSONResponse(status_code=422, content={"error": exc.to_dict(), "logs": exc.logs})


@app.post("/execute", response_model=ExecuteResponse)
async def execute(
    request: ExecuteRequest,
    engine: SandboxEngine = Depends(get_sandbox_engine),
):
    """
    Run one generated function with the given arguments.

    Utilities are written next to the code, dependencies are installed for
    this run only, and the sandbox is discarded afterwards.
    """
    module = CodeModule(source=request.code, function_name=request.functionName)
    result = await run_in_threadpool(
        engine.execute_code_module, module, request.functionArgs, request.to_run_setup()
    )
    return ExecuteResponse(output=result.value, logs=result.logs)


@app.post("/scripts/run", response_model=ExecuteResponse)
async def run_script(
    request: ScriptRequest,
    engine: SandboxEngine = Depends(get_sandbox_engine),
):
    result = await run_in_threadpool(
        engine.execute_script, Script(source=request.script), request.context
    )
    return ExecuteResponse(output=result.value, logs=result.logs)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

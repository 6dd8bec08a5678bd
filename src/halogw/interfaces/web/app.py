"""FastAPI application exposing the OpenAI-compatible gateway API."""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from halogw.auth.middleware import APIKeyMiddleware
from halogw.core.errors import GatewayError
from halogw.core.service import GatewayService, PreparedCall, new_request_id
from halogw.llm.schemas import ImageGenerationRequest, parse_chat_request, parse_request_body
from halogw.llm.task_profiles import TASK_PROFILES

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# Module-level service instance (initialized in create_app)
_service: GatewayService | None = None


def error_response(error: GatewayError, request_id: str | None = None) -> JSONResponse:
    return JSONResponse(error.to_response(request_id), status_code=error.status_code)


def _internal_error(request_id: str) -> GatewayError:
    logger.exception("[%s] Unhandled error", request_id)
    return GatewayError("Internal Server Error", request_id=request_id)


async def sse_events(service: GatewayService, prepared: PreparedCall) -> AsyncIterator[bytes | dict]:
    """Encode the service's SSE frames for ``EventSourceResponse``.

    Frames are already formatted, so they are passed as bytes. A failure ends
    the stream with a single ``error`` event and no ``[DONE]``.
    """
    try:
        async for frame in service.stream(prepared):
            yield frame.encode("utf-8")
    except GatewayError as e:
        logger.error("[%s] Stream failed: %s", prepared.request_id, e)
        yield {"event": "error", "data": json.dumps(e.to_response(prepared.request_id))}
    except Exception:
        error = _internal_error(prepared.request_id)
        yield {"event": "error", "data": json.dumps(error.to_response(prepared.request_id))}


def create_app(service: GatewayService | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    global _service
    _service = service or GatewayService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting halogw (default provider: %s)", _service.settings.default_provider)

        yield

        logger.info("Shutting down halogw...")
        await _service.aclose()

    app = FastAPI(
        title="halogw",
        version=VERSION,
        description="OpenAI-compatible gateway over Azure OpenAI, OpenAI and Azure AI Foundry",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        APIKeyMiddleware,
        api_key=_service.settings.api_key or os.environ.get("HALOGW_API_KEY"),
    )
    app.state.service = _service

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = GatewayError(str(exc.detail), status_code=exc.status_code, error_code="HTTP_ERROR")
        return error_response(error)

    # -----------------------------------------------------------------------
    # System
    # -----------------------------------------------------------------------

    @app.get("/health", tags=["System"], summary="Health check")
    async def health_check():
        return JSONResponse({
            "status": "healthy",
            "version": VERSION,
            "provider": _service.settings.default_provider,
            "model": _service.settings.default_model,
        })

    @app.get("/status", tags=["System"], summary="Check the default provider is reachable")
    async def status_check():
        request_id = new_request_id()
        try:
            status = await _service.check_status(request_id)
        except GatewayError as e:
            logger.warning("[%s] Status check failed: %s", request_id, e)
            return error_response(e, request_id)
        except Exception:
            return error_response(_internal_error(request_id), request_id)
        return JSONResponse({**status, "version": VERSION})

    @app.get("/v1/models", tags=["Models"], summary="List models and capabilities")
    async def list_models(provider: str | None = None):
        return JSONResponse({"object": "list", "data": _service.list_models(provider)})

    @app.get("/v1/task-profiles", tags=["Models"], summary="List task profiles")
    async def list_task_profiles():
        return JSONResponse({
            "object": "list",
            "data": [asdict(profile) for profile in TASK_PROFILES.values()],
        })

    # -----------------------------------------------------------------------
    # Completions
    # -----------------------------------------------------------------------

    @app.post("/v1/chat/completions", tags=["Chat"], summary="Create chat completion")
    async def chat_completions(request: Request):
        request_id = new_request_id()
        try:
            chat_request = parse_chat_request(await request.body())
            prepared = _service.prepare(chat_request, request_id)
            if prepared.stream:
                return EventSourceResponse(sse_events(_service, prepared))
            response = await _service.complete(prepared)
        except GatewayError as e:
            logger.warning("[%s] Request failed: %s", request_id, e)
            return error_response(e, request_id)
        except Exception:
            return error_response(_internal_error(request_id), request_id)
        return JSONResponse(response.model_dump(exclude_none=True))

    @app.post("/v1/images/generations", tags=["Images"], summary="Generate images")
    async def generate_images(request: Request):
        request_id = new_request_id()
        try:
            image_request = parse_request_body(await request.body(), ImageGenerationRequest)
            response = await _service.generate_images(image_request, request_id)
        except GatewayError as e:
            logger.warning("[%s] Image generation failed: %s", request_id, e)
            return error_response(e, request_id)
        except Exception:
            return error_response(_internal_error(request_id), request_id)
        return JSONResponse(response.model_dump(exclude_none=True))

    return app

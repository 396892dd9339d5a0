"""Fluxgate — FastAPI Application.

This module is the single entry point for the gateway.  It defines the
FastAPI ``app`` instance, the image generation resource, and the ``main()``
CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`~fluxgate.core.config.config`, built
  from ``FLUX_*`` environment variables when the process starts.
- **Image generation** is delegated to a hosted Gradio Space through
  :class:`~fluxgate.core.client_manager.ClientManager`, which keeps one
  shared client and reconnects after failures.
- **Errors** are rendered as ``{"status": false, "error": ...}`` by a single
  exception handler for :class:`~fluxgate.core.errors.GatewayError`.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/{slug}/image/generate``    Liveness check
POST      ``/{slug}/image/generate``    Generate an image from a prompt
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    fluxgate

Direct invocation::

    python -m fluxgate.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from fluxgate import __version__
from fluxgate.api.models import GenerationRequest, GenerationResult, HealthResponse
from fluxgate.core.client_manager import ClientManager
from fluxgate.core.config import config
from fluxgate.core.errors import (
    PROMPT_REQUIRED_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    AuthorizationError,
    GatewayError,
    PromptValidationError,
)

logger = logging.getLogger(__name__)

ROUTE_PATH = "/{slug}/image/generate"


# ---------------------------------------------------------------------------
# Application lifecycle — client manager setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Reads the bearer token from the configuration and stores a
        :class:`ClientManager` on ``app.state``.  No connection is opened
        yet; that happens on the first ``POST``.

    On shutdown:
        Drops the cached client.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    app.state.config = config
    app.state.api_key = config.api_key.get_secret_value()
    app.state.client_manager = ClientManager(config)
    if not app.state.api_key:
        logger.warning("FLUX_API_KEY is not set; every generation request will be rejected.")
    logger.info("ClientManager initialised for '%s' (not connected yet).", config.model_id)

    yield

    await app.state.client_manager.unload()
    logger.info("ClientManager unloaded on shutdown.")


app = FastAPI(
    title="Fluxgate",
    description="Authenticated gateway to a hosted text-to-image model.",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a :class:`GatewayError` as a ``status: false`` JSON body."""
    return JSONResponse(
        GenerationResult.failure(exc.message).to_body(),
        status_code=exc.status_code,
    )


# ---------------------------------------------------------------------------
# Request helpers.
# ---------------------------------------------------------------------------


async def require_bearer_token(request: Request) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <key>``.

    An empty configured key rejects everything.

    Raises:
        AuthorizationError: On a missing header, a non-Bearer scheme, or a
            token that does not equal the configured key.
    """
    expected: str = request.app.state.api_key
    header = request.headers.get("authorization")
    if not expected or not header or not header.startswith("Bearer "):
        raise AuthorizationError()

    parts = header.split(" ")
    if len(parts) < 2 or parts[1] != expected:
        raise AuthorizationError()


def parse_generation_request(payload: Any) -> GenerationRequest:
    """Check a decoded JSON body for a prompt.

    Only the presence of a non-empty ``prompt`` is checked.  Every field,
    the prompt included, is forwarded with whatever JSON type it arrived as.

    Args:
        payload: Whatever ``request.json()`` returned.

    Returns:
        The request with a non-empty prompt.

    Raises:
        PromptValidationError: If the prompt is missing or empty.
    """
    if not isinstance(payload, dict) or not payload.get("prompt"):
        raise PromptValidationError(PROMPT_REQUIRED_MESSAGE)

    return GenerationRequest.model_validate(payload)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get(ROUTE_PATH)
async def health(slug: str) -> dict:
    """Liveness check.  Needs no authorization and never touches the model."""
    return HealthResponse().model_dump()


@app.post(ROUTE_PATH, dependencies=[Depends(require_bearer_token)])
async def generate_image(slug: str, request: Request) -> JSONResponse:
    """Generate an image with the hosted model.

    This endpoint:

    1. Checks the bearer token (dependency; 401 on failure).
    2. Parses the JSON body and requires a non-empty ``prompt`` (400).
    3. Connects to the Space if no client is cached.
    4. Calls the remote endpoint with defaults filled in.
    5. Returns the image ``path``, ``url`` and merged ``meta``.

    Steps 3 and 4 share one ``request_timeout`` deadline.  Any other failure,
    including an unparsable body or a result that cannot be rendered as
    JSON, resets the cached connection and returns 500 with the exception
    message.

    Returns:
        JSON body ``{"status": true, "path": ..., "url": ..., "meta": {...}}``.

    Raises:
        PromptValidationError: 400 for a missing or empty prompt.
    """
    manager: ClientManager = request.app.state.client_manager
    client = None
    try:
        payload = await request.json()
        gen_request = parse_generation_request(payload)
        params = gen_request.effective_params(request.app.state.config)

        deadline = manager.deadline()
        client = await manager.get_client(deadline)
        image_data, seed = await manager.predict(client, params, deadline)
        result = GenerationResult.from_prediction(image_data, seed, params)
        return JSONResponse(result.to_body(), status_code=200)
    except PromptValidationError:
        raise
    except Exception as exc:
        logger.exception("Error generating image")
        manager.reset(client)
        message = str(exc) or UNKNOWN_ERROR_MESSAGE
        return JSONResponse(GenerationResult.failure(message).to_body(), status_code=500)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host, port and log level come from ``FLUX_SERVER_HOST``,
    ``FLUX_SERVER_PORT`` and ``FLUX_LOG_LEVEL``.  Registered as the
    ``fluxgate`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "fluxgate.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()

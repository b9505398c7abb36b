"""NLC — FastAPI app exposing the natural-language compiler.

One compile endpoint (plus an alias at the legacy serverless path) accepts
the common HTTP methods and hands the raw request to the dispatcher, which
owns the 204/405 semantics. Any other method gets the same 405 from an
exception handler. Every compile response carries the same CORS headers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from nlc.config import get_config, load_config
from nlc.dispatcher import Dispatcher
from nlc.errors import MethodNotAllowed

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Content-Type": "application/json",
}

LEGACY_ROUTE = "/.netlify/functions/compile"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    logger.info(
        f"NLC started (model={config.model}, route={config.route}, "
        f"credential={'present' if config.resolve_api_key() else 'missing'})"
    )
    yield
    logger.info("NLC shutting down")


# Load config early so the compile route can be mounted at the configured path.
_boot_config = load_config()

app = FastAPI(title="NLC Compiler", version="0.1.0", lifespan=lifespan)


def get_dispatcher() -> Dispatcher:
    """Fresh dispatcher per request; nothing is shared between invocations."""
    return Dispatcher(get_config())


# ---------------------------------------------------------------------------
# Compile endpoint
# ---------------------------------------------------------------------------


async def compile_endpoint(
    request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)
) -> Response:
    """Compile an algorithm description into a JavaScript function."""
    body = await request.body()
    outcome = await dispatcher.dispatch(request.method, body)

    if outcome.body is None:
        return Response(status_code=outcome.status_code, headers=CORS_HEADERS)
    return JSONResponse(
        content=outcome.body,
        status_code=outcome.status_code,
        headers=CORS_HEADERS,
    )


COMPILE_PATHS = tuple(dict.fromkeys([_boot_config.route, LEGACY_ROUTE]))

for _path in COMPILE_PATHS:
    app.add_api_route(
        _path,
        compile_endpoint,
        methods=ALL_METHODS,
        include_in_schema=_path == _boot_config.route,
    )


@app.exception_handler(StarletteHTTPException)
async def compile_method_not_allowed(request: Request, exc: StarletteHTTPException):
    """Methods outside ALL_METHODS are rejected by routing before the dispatcher
    runs; give them the same 405 body and CORS headers on the compile paths."""
    if exc.status_code == 405 and request.url.path in COMPILE_PATHS:
        return JSONResponse(
            content=MethodNotAllowed().to_response(),
            status_code=405,
            headers=CORS_HEADERS,
        )
    return await http_exception_handler(request, exc)


# ---------------------------------------------------------------------------
# Operational endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    """Liveness check."""
    config = get_config()
    return {
        "status": "healthy",
        "model": config.model,
        "configured": config.resolve_api_key() is not None,
    }

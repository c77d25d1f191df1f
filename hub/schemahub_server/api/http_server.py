"""
HTTP server implementation for SchemaHub.

REST surface over RegistryServicer, used by CI pipelines, deployment tooling
and dashboards.

Invariants:
    - HTTP endpoints have the same semantics as the servicer methods
    - Every /v1/services and /v1/versions route requires the X-API-Key header
    - JSON request/response format; errors are {"error", "error_code"}
    - Status codes are derived from error codes, never from messages

How to change safely:
    - Add new routes under /v1 without changing existing response shapes
    - Version the API if breaking changes are needed
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Dict, Optional

from aiohttp import web

from ..config import HttpConfig
from ..errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    RegistryError,
    RegistryTimeoutError,
    ValidationError,
)
from .servicer import RegistryServicer

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

_STATUS_BY_CODE: Dict[str, int] = {
    cls.code: cls.http_status
    for cls in (
        RegistryError,
        NotFoundError,
        AuthError,
        ValidationError,
        ConflictError,
        RegistryTimeoutError,
    )
}


def create_http_app(
    servicer: RegistryServicer,
    config: Optional[HttpConfig] = None,
) -> web.Application:
    """Create an HTTP application for SchemaHub.

    Args:
        servicer: RegistryServicer instance
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application(client_max_size=config.client_max_size)

    # Add routes
    app.router.add_post("/v1/services/{service_id}/push", lambda r: handle_push(r, servicer))
    app.router.add_post("/v1/services/{service_id}/check", lambda r: handle_check(r, servicer))
    app.router.add_get("/v1/services/{service_id}/history", lambda r: handle_history(r, servicer))
    app.router.add_get("/v1/services/{service_id}/tags", lambda r: handle_list_tags(r, servicer))
    app.router.add_get(
        "/v1/services/{service_id}/tags/{tag}", lambda r: handle_resolve_tag(r, servicer)
    )
    app.router.add_post("/v1/services/{service_id}/usage", lambda r: handle_usage(r, servicer))
    app.router.add_get("/v1/versions/{version_id}", lambda r: handle_get_version(r, servicer))
    app.router.add_get("/v1/health", lambda r: handle_health(r, servicer))

    # Add CORS middleware
    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = e

        origin = request.headers.get("Origin", "*")
        if "*" in config.cors_origins or origin in config.cors_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = f"Content-Type, {API_KEY_HEADER}"

        return response

    app.middlewares.append(cors_middleware)

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"error": "Internal error", "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.insert(0, error_middleware)

    return app


def respond(result: Dict[str, Any], status: int = 200) -> web.Response:
    """Build a JSON response, deriving the status from error_code if present."""
    error_code = result.get("error_code")
    if error_code:
        status = _STATUS_BY_CODE.get(error_code, 500)
    return web.json_response(result, status=status)


def bad_request(message: str) -> web.Response:
    return web.json_response(
        {"error": message, "error_code": ValidationError.code},
        status=ValidationError.http_status,
    )


def extract_api_key(request: web.Request) -> Optional[str]:
    """API key from the X-API-Key header (None if absent)."""
    return request.headers.get(API_KEY_HEADER)


async def read_json(request: web.Request) -> Dict[str, Any]:
    """Parse a JSON object body.

    Raises:
        ValueError: If the body is not a JSON object
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


async def handle_push(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle POST /v1/services/{service_id}/push - Push a schema."""
    api_key = extract_api_key(request)
    service_id = request.match_info["service_id"]

    # Authenticate before touching the body so bad keys never reach the stores
    try:
        servicer.authenticate(api_key)
    except AuthError as e:
        return respond(e.to_dict())

    try:
        body = await read_json(request)
    except ValueError as e:
        return bad_request(str(e))

    result = await servicer.push(
        service_id,
        body.get("sdl"),
        api_key,
        tag=body.get("tag"),
    )
    return respond(result)


async def handle_check(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle POST /v1/services/{service_id}/check - Check a candidate schema."""
    api_key = extract_api_key(request)
    service_id = request.match_info["service_id"]

    try:
        servicer.authenticate(api_key)
    except AuthError as e:
        return respond(e.to_dict())

    try:
        body = await read_json(request)
    except ValueError as e:
        return bad_request(str(e))

    result = await servicer.check(
        service_id,
        body.get("sdl"),
        api_key,
        tag=body.get("tag"),
        usage=body.get("usage"),
    )
    return respond(result)


async def handle_history(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle GET /v1/services/{service_id}/history - Push history."""
    api_key = extract_api_key(request)
    service_id = request.match_info["service_id"]
    tag = request.query.get("tag") or None

    limit = None
    if "limit" in request.query:
        try:
            limit = int(request.query["limit"])
        except ValueError:
            return bad_request("limit must be an integer")

    result = await servicer.history(service_id, api_key, tag=tag, limit=limit)
    return respond(result)


async def handle_list_tags(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle GET /v1/services/{service_id}/tags - List tags."""
    result = await servicer.list_tags(request.match_info["service_id"], extract_api_key(request))
    return respond(result)


async def handle_resolve_tag(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle GET /v1/services/{service_id}/tags/{tag} - Resolve a tag."""
    result = await servicer.resolve_tag(
        request.match_info["service_id"],
        request.match_info["tag"],
        extract_api_key(request),
    )
    return respond(result)


async def handle_usage(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle POST /v1/services/{service_id}/usage - Report field usage."""
    api_key = extract_api_key(request)
    service_id = request.match_info["service_id"]

    try:
        servicer.authenticate(api_key)
    except AuthError as e:
        return respond(e.to_dict())

    try:
        body = await read_json(request)
    except ValueError as e:
        return bad_request(str(e))

    result = await servicer.report_usage(service_id, body.get("paths", []), api_key)
    return respond(result)


async def handle_get_version(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle GET /v1/versions/{version_id} - Get a schema version."""
    result = await servicer.get_version(request.match_info["version_id"], extract_api_key(request))
    return respond(result)


async def handle_health(request: web.Request, servicer: RegistryServicer) -> web.Response:
    """Handle GET /v1/health - Health check."""
    result = await servicer.health()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)

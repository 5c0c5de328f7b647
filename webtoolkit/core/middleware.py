import logging
import time
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from .config import Config
from ..services.json_exchange import error_json
from .errors import ToolkitError


logger = logging.getLogger(__name__)


def cors_allowed_origins() -> list[str]:
    return Config.allowed_origins()


def _apply_cors_headers(request: Request, response: Response) -> Response:
    origin = request.headers.get("origin")
    if origin and origin in cors_allowed_origins():
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "*"
    return response


def _request_id(request: Request) -> str:
    return f"{int(time.time() * 1000)}-{id(request)}"


def _toolkit_context(request: Request) -> str:
    """Summarize what the toolkit helpers did for this request, if anything."""
    parts = []
    upload_count = getattr(request.state, "upload_count", None)
    if upload_count is not None:
        parts.append(f"uploads={upload_count}")
    json_target = getattr(request.state, "json_target", None)
    if json_target:
        parts.append(f"json={json_target}")
    return f" [{' '.join(parts)}]" if parts else ""


async def log_requests(request: Request, call_next: Callable):
    start_time = time.time()
    request_id = _request_id(request)

    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        stored_uploads = getattr(request.state, "upload_count", None) is not None
        # Log slow requests (>1s), errors and anything that stored uploads
        if process_time > 1.0 or response.status_code >= 400 or stored_uploads:
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - {response.status_code} - "
                f"{process_time:.2f}s{_toolkit_context(request)}"
            )
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} - ERROR: {str(e)} - "
            f"{process_time:.2f}s{_toolkit_context(request)}"
        )
        raise


async def toolkit_error_handler(request: Request, exc: ToolkitError):
    """Render helper failures as the {"error": true, "message": ...} envelope."""
    logger.warning(f"[{_request_id(request)}] {request.method} {request.url.path} - {exc.status_code}: {exc.message}")
    return _apply_cors_headers(request, error_json(exc, exc.status_code))


async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception in {request.method} {request.url.path}: {str(exc)}", exc_info=True)

    response = JSONResponse(status_code=500, content={"error": True, "message": "Internal server error"})
    return _apply_cors_headers(request, response)

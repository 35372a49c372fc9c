"""
Admin Routes - manual data retention cleanup.

POST returns JSON for scripts; GET renders an HTML page for browser use.
Both are gated by the shared ``ADMIN_KEY``.
"""

import hmac
import html
import json
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse

from planning_poker.container import PokerServices, get_services
from planning_poker.db.models import CleanupResult

logger = structlog.get_logger()

router = APIRouter(prefix="/admin", tags=["admin"])


class InvalidDays(ValueError):
    pass


def key_matches(provided: Optional[Any], expected: str) -> bool:
    """Exact match against the configured key. An unset key matches nothing."""
    if not expected or not isinstance(provided, str) or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def parse_days(raw: Optional[Any], default: int) -> int:
    """Parse the ``days`` parameter; blank means ``default``.

    Raises:
        InvalidDays: When it's not a positive integer.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise InvalidDays(raw)
    try:
        days = int(raw)
    except (TypeError, ValueError) as e:
        raise InvalidDays(raw) from e
    if days <= 0:
        raise InvalidDays(raw)
    return days


async def _request_params(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


# =============================================================================
# HTML Templates
# =============================================================================

RESULT_TEMPLATE = """
<html>
  <head>
    <title>Database Cleanup Results</title>
    <style>
      body {{ font-family: Arial, sans-serif; margin: 40px; line-height: 1.6; }}
      .success {{ color: green; }}
      .error {{ color: red; }}
      pre {{ background: #f4f4f4; padding: 10px; border-radius: 5px; }}
    </style>
  </head>
  <body>
    <h1>Database Cleanup Results</h1>
    <div class="{css_class}">
      <h2>{heading}</h2>
      {summary}
    </div>
    <h3>Full Response:</h3>
    <pre>{raw}</pre>
  </body>
</html>
"""

ERROR_TEMPLATE = """
<html>
  <head><title>Error</title></head>
  <body>
    <h1>Error</h1>
    <p>{message}</p>
  </body>
</html>
"""


def render_cleanup_result(result: CleanupResult) -> str:
    if result.success:
        summary = (
            "<p>Successfully cleaned up:</p>\n"
            "      <ul>\n"
            f"        <li><strong>{result.deleted_sessions}</strong> old sessions</li>\n"
            f"        <li><strong>{result.deleted_votes}</strong> associated votes</li>\n"
            "      </ul>"
        )
    else:
        summary = f"<p>Error: {html.escape(result.error or 'unknown error')}</p>"

    return RESULT_TEMPLATE.format(
        css_class="success" if result.success else "error",
        heading="Success!" if result.success else "Error",
        summary=summary,
        raw=html.escape(json.dumps(result.model_dump(), indent=2)),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/cleanup")
async def cleanup_post(request: Request, services: PokerServices = Depends(get_services)) -> JSONResponse:
    """Run the retention sweep. Accepts form or JSON ``{key, days}``."""
    params = await _request_params(request)

    if not key_matches(params.get("key"), services.settings.admin_key):
        logger.warning("admin_cleanup_unauthorized", method="POST")
        return JSONResponse({"success": False, "error": "Unauthorized: Invalid key"}, status_code=401)

    try:
        days = parse_days(params.get("days"), services.settings.retention_days)
    except InvalidDays:
        return JSONResponse({"success": False, "error": "Invalid days parameter"}, status_code=400)

    try:
        result = await services.sweeper.cleanup_old_sessions(days)
    except Exception as e:
        logger.error("admin_cleanup_failed", error=str(e), exc_info=True)
        return JSONResponse({"success": False, "error": str(e) or "Internal server error"}, status_code=500)

    logger.info("admin_cleanup_completed", days=days, success=result.success)
    return JSONResponse(result.model_dump(), status_code=200 if result.success else 500)


@router.get("/cleanup", response_class=HTMLResponse)
async def cleanup_get(
    key: Optional[str] = None,
    days: Optional[str] = None,
    services: PokerServices = Depends(get_services),
) -> HTMLResponse:
    """Browser-friendly variant of the cleanup endpoint."""
    if not key_matches(key, services.settings.admin_key):
        logger.warning("admin_cleanup_unauthorized", method="GET")
        return HTMLResponse("Unauthorized: Invalid key", status_code=401)

    try:
        retention_days = parse_days(days, services.settings.retention_days)
    except InvalidDays:
        return HTMLResponse("Invalid days parameter", status_code=400)

    try:
        result = await services.sweeper.cleanup_old_sessions(retention_days)
    except Exception as e:
        logger.error("admin_cleanup_failed", error=str(e), exc_info=True)
        return HTMLResponse(ERROR_TEMPLATE.format(message=html.escape(str(e) or "Internal server error")), status_code=500)

    return HTMLResponse(render_cleanup_result(result))

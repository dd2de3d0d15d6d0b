"""Frontend router - serves the lookup page and static error pages."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response

from app.config import settings
from app.logger import get_logger

router = APIRouter()

logger = get_logger(__name__)

FRONTEND_ERROR_REDIRECT = "/error.html?msg=Failed+to+load+frontend"


def _static_path(name: str) -> Path:
    return Path(settings.static_dir) / name


def _js_string_literal(value: str) -> str:
    # JSON is valid JS; escape "<" so the value cannot close the script tag.
    return json.dumps(value).replace("<", "\\u003c")


def inject_control_id(html: str, control_id: str) -> str:
    """Expose the requested control id to the page as `window.INIT_CONTROL_ID`."""
    script = f"<script>window.INIT_CONTROL_ID = {_js_string_literal(control_id)};</script>"
    return html.replace("</body>", f"{script}</body>", 1)


def static_page_response(
    name: str,
    *,
    status_code: int,
    fallback: dict[str, str],
) -> Response:
    """Serve a page from the static directory, or JSON if it is missing."""
    path = _static_path(name)
    if path.is_file():
        return FileResponse(path, status_code=status_code, media_type="text/html")
    return JSONResponse(status_code=status_code, content=fallback)


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(control_id: Annotated[str, Query(alias="id")] = "") -> Response:
    """Render the lookup page, pre-filled with `?id=` when given."""
    try:
        html = await asyncio.to_thread(_static_path("index.html").read_text, encoding="utf-8")
    except OSError as exc:
        logger.error("frontend_load_failed", error=str(exc))
        return RedirectResponse(FRONTEND_ERROR_REDIRECT, status_code=302)

    return HTMLResponse(inject_control_id(html, control_id))

# backend/app/api/pages.py
"""
Routes of the single-page frontend

Known paths serve the built SPA shell. Unknown paths honour the checkout
return flags before falling back to a 404 page.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from app.core.config import settings

router = APIRouter()

SPA_ROUTES = ["/", "/auth", "/reset-password", "/dashboard", "/scan/{scan_id}", "/pricing", "/redeem"]

FALLBACK_SHELL = """<!DOCTYPE html>
<html lang="pt-BR">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>SecureX</title>
</head>
<body><div id="root"></div></body>
</html>"""

NOT_FOUND_PAGE = """<!DOCTYPE html>
<html lang="pt-BR">
<head><meta charset="utf-8"><title>404 | SecureX</title></head>
<body>
<h1>404</h1>
<p>Oops! Page not found</p>
<a href="/">Return to Home</a>
</body>
</html>"""


def load_shell(dist_dir: Optional[str] = None) -> str:
    dist_dir = dist_dir if dist_dir is not None else settings.FRONTEND_DIST_DIR
    if dist_dir:
        index = Path(dist_dir) / "index.html"
        if index.is_file():
            return index.read_text(encoding="utf-8")
    return FALLBACK_SHELL


async def spa_page(request: Request) -> HTMLResponse:
    return HTMLResponse(load_shell())


for _path in SPA_ROUTES:
    router.add_api_route(_path, spa_page, methods=["GET"], response_class=HTMLResponse, include_in_schema=False)


@router.get("/{full_path:path}", include_in_schema=False)
async def catch_all(full_path: str, request: Request):
    """Checkout return flags redirect; anything else is a 404 page"""
    params = request.query_params
    if params.get("canceled") == "true":
        return RedirectResponse("/pricing", status_code=status.HTTP_302_FOUND)
    if params.get("success") == "true":
        return RedirectResponse("/dashboard", status_code=status.HTTP_302_FOUND)
    return HTMLResponse(NOT_FOUND_PAGE, status_code=status.HTTP_404_NOT_FOUND)

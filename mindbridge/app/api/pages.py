"""Placeholder HTML pages.

The gate redirects unauthenticated page requests to ``/login`` and
non-admins on ``/dashboard/admin`` to ``/dashboard``; these routes give
those redirects somewhere to land.
"""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        "<!DOCTYPE html>"
        f"<html><head><title>{title} | MindBridge</title></head>"
        f"<body><h1>{title}</h1><p>{body}</p></body></html>"
    )


@router.get("/", response_class=HTMLResponse)
async def home() -> HTMLResponse:
    return _page("MindBridge", "Mental health support, when you need it.")


@router.get("/login", response_class=HTMLResponse)
async def login_page() -> HTMLResponse:
    return _page("Sign in", "Sign in to continue.")


@router.get("/register", response_class=HTMLResponse)
async def register_page() -> HTMLResponse:
    return _page("Create an account", "Join as a user or a therapist.")


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page() -> HTMLResponse:
    return _page("Dashboard", "Your sessions and messages.")


@router.get("/dashboard/admin", response_class=HTMLResponse)
async def admin_dashboard_page() -> HTMLResponse:
    return _page("Admin dashboard", "Platform statistics and user management.")

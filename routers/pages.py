from urllib.parse import urlsplit

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse

from core.config import settings

router = APIRouter()


def render(request: Request, template: str, **context):
    gate = getattr(request.state, "gate", None)
    return request.app.state.templates.TemplateResponse(
        request,
        template,
        {
            "app_name": settings.APP_NAME,
            "identity": gate.identity if gate else None,
            **context,
        },
    )


def same_site_path(url: str) -> str:
    r"""The url when it is a path on this site, otherwise an empty string.

    Browsers read a backslash as a slash and drop tabs and newlines, so
    ``/\evil.example`` and ``/<tab>/evil.example`` both lead off-site.
    """
    if any(ord(ch) < 0x20 for ch in url):
        return ""
    normalized = url.replace("\\", "/")
    parts = urlsplit(normalized)
    if not normalized.startswith("/") or normalized.startswith("//") or parts.scheme or parts.netloc:
        return ""
    return url


def _locale(locale: str) -> str:
    if locale not in settings.SUPPORTED_LOCALES:
        raise HTTPException(status_code=404, detail="Page not found")
    return locale


# ---------- admin ----------
# every /admin page has already been through the request gate
@router.get("/admin", response_class=HTMLResponse)
@router.get("/admin/{section:path}", response_class=HTMLResponse)
async def admin(request: Request, section: str = "dashboard"):
    return render(request, "admin.html", locale=settings.DEFAULT_LOCALE, section=section or "dashboard")


# ---------- localized ----------
@router.get("/{locale}", response_class=HTMLResponse)
async def home(request: Request, locale: str):
    return render(request, "home.html", locale=_locale(locale))


@router.get("/{locale}/login", response_class=HTMLResponse)
async def login(request: Request, locale: str, callbackUrl: str = ""):
    return render(request, "login.html", locale=_locale(locale), callback_url=same_site_path(callbackUrl))


@router.get("/{locale}/dashboard", response_class=HTMLResponse)
@router.get("/{locale}/dashboard/{section:path}", response_class=HTMLResponse)
async def dashboard(request: Request, locale: str, section: str = ""):
    return render(request, "dashboard.html", locale=_locale(locale), section=section or "overview")


@router.get("/{locale}/admin", response_class=HTMLResponse)
@router.get("/{locale}/admin/{section:path}", response_class=HTMLResponse)
async def localized_admin(request: Request, locale: str, section: str = "dashboard"):
    return render(request, "admin.html", locale=_locale(locale), section=section or "dashboard")

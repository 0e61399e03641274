# app/core/gate.py
"""Request gate.

Runs in front of every handler. Each request moves through

    UNCLASSIFIED -> PUBLIC_PASS
    UNCLASSIFIED -> AUTH_REQUIRED -> UNAUTHENTICATED            (login redirect)
    UNCLASSIFIED -> AUTH_REQUIRED -> AUTHENTICATED -> ALLOWED
    UNCLASSIFIED -> AUTH_REQUIRED -> AUTHENTICATED -> DENIED    (landing redirect)

``RequestGate.evaluate`` holds the decision logic and does no I/O beyond the
identity loader it is handed; the middleware only turns decisions into
responses.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from core.policy import ResourceClass, classify_path, is_allowed, action_for_method
from core.security import Identity, resolve_identity
from models.user import UserRole, parse_role

logger = logging.getLogger(__name__)


class GateState(str, enum.Enum):
    UNCLASSIFIED = "UNCLASSIFIED"
    PUBLIC_PASS = "PUBLIC_PASS"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTHENTICATED = "AUTHENTICATED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    redirect_to: Optional[str] = None
    resource_class: Optional[ResourceClass] = None
    identity: Optional[Identity] = None

    @property
    def passes(self) -> bool:
        return self.state in (GateState.PUBLIC_PASS, GateState.ALLOWED)


class RequestGate:
    def __init__(
            self,
            locales: Sequence[str],
            default_locale: str,
            landing_pages: Mapping[str, str],
            fallback_landing_page: str,
            public_paths: Sequence[str] = (),
    ):
        self.locales = frozenset(locales)
        self.default_locale = default_locale
        self.landing_pages = dict(landing_pages)
        self.fallback_landing_page = fallback_landing_page
        self.public_paths = tuple(public_paths)

    @classmethod
    def from_settings(cls, config=settings) -> "RequestGate":
        return cls(
            locales=config.SUPPORTED_LOCALES,
            default_locale=config.DEFAULT_LOCALE,
            landing_pages=config.ROLE_LANDING_PAGES,
            fallback_landing_page=config.FALLBACK_LANDING_PAGE,
            public_paths=config.PUBLIC_PATHS,
        )

    # ---------- static helpers ----------
    def normalize_path(self, path: str) -> str:
        """Root is served under the default locale."""
        if path in ("", "/"):
            return f"/{self.default_locale}"
        return path

    def login_url(self, path: str, query: str = "", locale: Optional[str] = None) -> str:
        target = f"{path}?{query}" if query else path
        return f"/{locale or self.default_locale}/login?callbackUrl={quote(target, safe='')}"

    def landing_page(self, role, locale: Optional[str] = None) -> str:
        parsed = parse_role(role)
        template = self.landing_pages.get(parsed.value) if parsed else None
        return (template or self.fallback_landing_page).format(locale=locale or self.default_locale)

    def is_public(self, path: str) -> bool:
        return any(path == p.rstrip("/") or path.startswith(p) for p in self.public_paths)

    # ---------- decision ----------
    def evaluate(
            self,
            method: str,
            path: str,
            identity_loader: Callable[[], Optional[Identity]],
            query: str = "",
    ) -> GateDecision:
        if self.is_public(path):
            return GateDecision(GateState.PUBLIC_PASS)

        match = classify_path(path, self.locales)
        if match is None:
            return GateDecision(GateState.PUBLIC_PASS)

        # AUTH_REQUIRED
        try:
            identity = identity_loader()
        except Exception:
            logger.exception(f"Identity lookup failed for {path}; treating as anonymous")
            identity = None

        if identity is None:
            return GateDecision(
                GateState.UNAUTHENTICATED,
                redirect_to=self.login_url(path, query, match.locale),
                resource_class=match.resource_class,
            )

        # AUTHENTICATED
        role = parse_role(identity.role)

        # the own dashboard is where every denial lands, unknown roles included
        if match.resource_class is ResourceClass.DASHBOARD_SELF:
            if role is None:
                logger.warning(
                    f"Data integrity: user {identity.user_id} has unknown role {identity.role!r}; "
                    f"serving {path} as the fallback landing page"
                )
            return GateDecision(GateState.ALLOWED, resource_class=match.resource_class, identity=identity)

        if role is UserRole.ADMIN:
            return GateDecision(GateState.ALLOWED, resource_class=match.resource_class, identity=identity)

        if role is None:
            logger.warning(
                f"Data integrity: user {identity.user_id} has unknown role {identity.role!r}; "
                f"denying {path}"
            )
        elif is_allowed(role, match.resource_class, action_for_method(method)):
            return GateDecision(GateState.ALLOWED, resource_class=match.resource_class, identity=identity)

        redirect_to = self.landing_page(identity.role, match.locale)
        logger.info(
            f"Gate denied {identity.role} on {path} ({match.resource_class.value}), redirecting to {redirect_to}"
        )
        return GateDecision(
            GateState.DENIED,
            redirect_to=redirect_to,
            resource_class=match.resource_class,
            identity=identity,
        )


class RequestGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, gate: RequestGate = None):
        super().__init__(app)
        self.gate = gate or RequestGate.from_settings()

    async def dispatch(self, request: Request, call_next):
        path = self.gate.normalize_path(request.url.path)
        if path != request.url.path:
            request.scope["path"] = path
            request.scope["raw_path"] = path.encode()

        decision = self.gate.evaluate(
            request.method,
            path,
            lambda: resolve_identity(request),
            query=request.url.query,
        )
        if not decision.passes:
            return RedirectResponse(decision.redirect_to, status_code=307)

        request.state.gate = decision
        return await call_next(request)

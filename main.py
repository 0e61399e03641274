import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api_router import api_router
from core.config import settings
from core.exceptions import WorkflowTransitionError, UnknownRoleError
from core.gate import RequestGateMiddleware
from routers.pages import router as pages_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
}


app = FastAPI(
    title=settings.APP_NAME,
    description="Project delivery dashboard: role based access, milestone approvals, notifications",
    version="1.0.0"
)

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=BASE_DIR / "templates")
app.state.templates = templates

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
# outermost middleware: the gate sees every request first
app.add_middleware(RequestGateMiddleware)


# ---------- error handlers ----------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": ERROR_CODES.get(exc.status_code, "ERROR")},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(WorkflowTransitionError)
async def workflow_transition_handler(request: Request, exc: WorkflowTransitionError):
    logger.info(f"Rejected workflow action on {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc), "code": "CONFLICT"})


@app.exception_handler(UnknownRoleError)
async def unknown_role_handler(request: Request, exc: UnknownRoleError):
    logger.warning(f"Data integrity: {exc} on {request.url.path}")
    return JSONResponse(status_code=403, content={"detail": "Access denied", "code": "FORBIDDEN"})


app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": "1.0.0"
    }


# locale catch-all routes go last
app.include_router(pages_router)

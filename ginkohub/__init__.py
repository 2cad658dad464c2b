"""
GinkoHub Tools API application package
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ginkohub.config import Config
from ginkohub.logger import configure_logging, get_logger
from ginkohub.models import ErrorResponse
from ginkohub.routes.comments import router as comments_router
from ginkohub.routes.fetch import router as fetch_router
from ginkohub.routes.github import router as github_router
from ginkohub.routes.images import router as images_router
from ginkohub.routes.root import router as root_router
from ginkohub.routes.system import router as system_router
from ginkohub.routes.tools import router as tools_router

API_ROUTERS = (
    github_router,
    tools_router,
    system_router,
    images_router,
    fetch_router,
    comments_router,
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    configure_logging()
    logger = get_logger("app")

    app = FastAPI(
        title=Config.TITLE,
        description=Config.DESCRIPTION,
        version=Config.VERSION,
        docs_url=Config.DOCS_URL,
        openapi_url=Config.OPENAPI_URL,
        redoc_url=None,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.ALLOW_ORIGINS,
        allow_credentials=Config.ALLOW_CREDENTIALS,
        allow_methods=Config.ALLOW_METHODS,
        allow_headers=Config.ALLOW_HEADERS,
    )

    # Include routers
    app.include_router(root_router)
    for prefix in Config.API_PREFIXES:
        for router in API_ROUTERS:
            app.include_router(router, prefix=prefix, include_in_schema=prefix == Config.API_PREFIXES[-1])

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render every HTTP error as {"error": ...}"""
        detail = exc.detail if exc.status_code != 404 or exc.detail != "Not Found" else "Not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Bad input is a 400, not FastAPI's default 422"""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error=_validation_message(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Last line of defence: log and answer 500"""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Server Error").model_dump(),
        )

    return app

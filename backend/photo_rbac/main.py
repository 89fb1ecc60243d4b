import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admin.router import router as admin_router
from .config import Settings, get_settings
from .crud.admin_role_grant import AdminRoleStore
from .database import (
    build_engine,
    build_sessionmaker,
    check_database_connection,
    create_all,
)
from .errors import (
    AppError,
    InternalError,
    ValidationError,
    error_payload,
    resolve_error_code,
)
from .services.admin.authorization_service import AuthorizationEngine
from .services.audit.audit_service import AuditService

logger = logging.getLogger("photo_rbac")


def _resolve_log_level(value: str) -> int:
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str) -> None:
    log_level = _resolve_log_level(level_name)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(log_level)


def _log_error(request: Request, status_code: int, code: str, message: str, exc: Exception | None = None) -> None:
    request_id = request.headers.get("x-request-id")
    log_message = f"[{code}] path={request.url.path} request_id={request_id or 'n/a'} message={message}"
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(log_message, exc_info=exc)
    else:
        logger.warning(log_message)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    _log_error(request, exc.status_code, exc.code, exc.message, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
    )


async def handle_http_exception(
    request: Request, exc: HTTPException | StarletteHTTPException
) -> JSONResponse:
    code = resolve_error_code(exc.status_code)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    _log_error(request, exc.status_code, code, message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code, message),
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = "Request validation failed"
    _log_error(request, status.HTTP_422_UNPROCESSABLE_ENTITY, ValidationError.code, message)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_payload(
            ValidationError.code,
            message,
            # Drop exception objects pydantic puts in ``ctx``
            [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()],
        ),
    )


async def handle_unhandled_exception(
    request: Request, exc: Exception
) -> JSONResponse:
    _log_error(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        InternalError.code,
        InternalError.message,
        exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(InternalError.code, InternalError.message),
    )


def create_app(
    settings: Settings | None = None,
    role_store: AdminRoleStore | None = None,
) -> FastAPI:
    """Build the application.

    With no ``role_store`` the store is built from ``settings.database_url``
    at startup; SQLite databases get their tables created there.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting application")
        if settings.debug:
            logger.warning("DEBUG=true, do not use in production")

        engine = None
        store = role_store
        if store is None:
            engine = build_engine(settings)
            if settings.is_sqlite:
                await create_all(engine)
            store = AdminRoleStore(build_sessionmaker(engine))

        app.state.db_engine = engine
        app.state.role_store = store
        app.state.authorization_engine = AuthorizationEngine(store)
        app.state.audit_service = AuditService()
        app.state.trust_forwarded_for = settings.trust_forwarded_for

        yield

        if engine is not None:
            await engine.dispose()
        logger.info("Application stopped")

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.include_router(admin_router)

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unhandled_exception)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> Response:
        engine = app.state.db_engine
        if engine is not None:
            try:
                await check_database_connection(engine)
            except SQLAlchemyError as exc:
                logger.error("Healthcheck database probe failed: %s", exc)
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "error"},
                )
        return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ok"})

    return app

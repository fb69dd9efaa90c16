import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as ModelValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, configure_logging
from .database import Database
from .errors import AppError
from .identity import IdentityProvider
from .routes import auth, category, medicine, order, review, stats, user

logger = logging.getLogger(__name__)


def failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def describe_validation_error(errors: List[dict]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, type(exc).__name__)
        return failure(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return failure(400, describe_validation_error(exc.errors()))

    # a model built from request data inside a service
    @app.exception_handler(ModelValidationError)
    async def model_validation_error_handler(request: Request, exc: ModelValidationError):
        logger.info("%s %s -> 400 %s", request.method, request.url.path, type(exc).__name__)
        return failure(400, describe_validation_error(exc.errors()))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return failure(exc.status_code, str(exc.detail))

    @app.middleware("http")
    async def unexpected_error_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(
                "Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path
            )
            return failure(500, "Internal server error")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    database = database or Database(
        url=settings.database_url,
        name=settings.database_name,
        use_transactions=settings.use_transactions,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.open()
        logger.info("Zenvira API ready (database %s)", database.name)
        try:
            yield
        finally:
            database.close()

    app = FastAPI(title="Zenvira API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database
    app.state.identity = IdentityProvider(
        database,
        secret=settings.auth_secret,
        expire_minutes=settings.access_token_expire_minutes,
        bcrypt_rounds=settings.bcrypt_rounds,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.trusted_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    for module in (auth, category, medicine, review, order, user, stats):
        app.include_router(module.router)

    @app.get("/")
    def read_root():
        return {"message": "Zenvira API running"}

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "service": "Zenvira API",
            "database": "connected" if database.ping() else "error",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)

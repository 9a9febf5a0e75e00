from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cognito import CognitoIdentityBridge
from .logging_config import bind_request_id, configure_logging, get_logger
from .repositories import Repository, get_repository
from .routers import auth as auth_router
from .routers import tags as tags_router
from .routers import todos as todos_router
from .settings import Settings, get_settings
from .tokens import TokenValidator

logger = get_logger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Login, registration and profile through the identity provider."},
    {"name": "todos", "description": "Todo items owned by the authenticated user."},
    {"name": "tags", "description": "Tags owned by the authenticated user."},
]


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("startup", backend=app.state.settings.persistence_backend)
    yield
    await app.state.identity_bridge.close()
    await app.state.token_validator.close()
    logger.info("shutdown")


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    identity_bridge: Optional[CognitoIdentityBridge] = None,
    token_validator: Optional[TokenValidator] = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Anything not passed in is constructed from settings (environment variables
    when settings is omitted). The instances are stored on app.state and
    reached by handlers through the dependencies module.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title="Todo List API",
        description="Personal todo list with tags, secured by an Amazon Cognito user pool.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.repository = repository or get_repository(settings)
    app.state.identity_bridge = identity_bridge or CognitoIdentityBridge(settings)
    app.state.token_validator = token_validator or TokenValidator(
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        jwks_url=settings.jwt_jwks_url,
        algorithms=settings.jwt_algorithms,
        http_timeout=settings.http_timeout,
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Bind a request id for log correlation and turn unexpected errors into a generic 500."""
        request_id = bind_request_id(request.headers.get("X-Request-ID"))
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("unhandled_error", method=request.method, path=request.url.path)
            return JSONResponse(status_code=500, content={"message": "Internal server error"})
        response.headers["X-Request-ID"] = request_id
        return response

    # Added last so it is outermost and CORS headers reach the generic 500 too.
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return field-level messages for request validation errors.

        Response format:
            {
                "message": "Request validation failed",
                "errors": [{"field": "description", "message": "..."}]
            }
        """
        return JSONResponse(
            status_code=400,
            content={
                "message": "Request validation failed",
                "errors": [
                    {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")}
                    for err in exc.errors()
                ],
            },
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(auth_router.router, prefix=settings.api_prefix)
    app.include_router(todos_router.router, prefix=settings.api_prefix)
    app.include_router(tags_router.router, prefix=settings.api_prefix)
    return app

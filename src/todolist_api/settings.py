from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - API_PREFIX: path prefix for all API routers. Default '/api'
    - COGNITO_REGION / COGNITO_USER_POOL_ID: location of the user pool
    - COGNITO_CLIENT_ID / COGNITO_CLIENT_SECRET: app client used for SECRET_HASH signing
    - COGNITO_ENDPOINT: optional override of the identity provider URL
    - COGNITO_CONTACT_ATTRIBUTE: user attribute receiving the confirmation code ('email' by default)
    - JWT_ISSUER: expected 'iss' claim; derived from region and pool when unset
    - JWT_AUDIENCE: expected 'client_id' claim; defaults to COGNITO_CLIENT_ID
    - JWT_JWKS_URL: signing keys document; defaults to '<issuer>/.well-known/jwks.json'
    - JWT_ALGORITHMS: comma-separated accepted signing algorithms (default 'RS256')
    - HTTP_TIMEOUT: timeout in seconds for outbound calls (default 10)
    - LOG_LEVEL: 'debug', 'info' (default), 'warning', 'error'
    - LOG_JSON: 'true' (default) for JSON log lines, 'false' for console output
    - HOST / PORT: bind address for `python -m todolist_api` (default 0.0.0.0:8000)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    api_prefix: str
    cognito_region: str
    cognito_user_pool_id: str
    cognito_client_id: str
    cognito_client_secret: str
    cognito_endpoint: str
    cognito_contact_attribute: str
    jwt_issuer: str
    jwt_audience: str
    jwt_jwks_url: str
    jwt_algorithms: Tuple[str, ...]
    http_timeout: float
    log_level: str
    log_json: bool
    host: str
    port: int


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_prefix(value: str) -> str:
    prefix = "/" + value.strip().strip("/")
    return "" if prefix == "/" else prefix


def default_issuer(region: str, user_pool_id: str) -> Optional[str]:
    """Issuer URL Cognito stamps into tokens of the given user pool."""
    if not region or not user_pool_id:
        return None
    return f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/todos.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    region = _get_env("COGNITO_REGION", "").strip()
    pool_id = _get_env("COGNITO_USER_POOL_ID", "").strip()
    client_id = _get_env("COGNITO_CLIENT_ID", "").strip()
    endpoint = _get_env("COGNITO_ENDPOINT", "").strip()
    if not endpoint and region:
        endpoint = f"https://cognito-idp.{region}.amazonaws.com/"

    issuer = _get_env("JWT_ISSUER", default_issuer(region, pool_id) or "").strip().rstrip("/")
    jwks_url = _get_env("JWT_JWKS_URL", f"{issuer}/.well-known/jwks.json" if issuer else "").strip()
    algorithms = tuple(
        a.strip() for a in _get_env("JWT_ALGORITHMS", "RS256").split(",") if a.strip()
    )

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        api_prefix=_parse_prefix(_get_env("API_PREFIX", "/api")),
        cognito_region=region,
        cognito_user_pool_id=pool_id,
        cognito_client_id=client_id,
        cognito_client_secret=_get_env("COGNITO_CLIENT_SECRET", ""),
        cognito_endpoint=endpoint,
        cognito_contact_attribute=_get_env("COGNITO_CONTACT_ATTRIBUTE", "email").strip(),
        jwt_issuer=issuer,
        jwt_audience=_get_env("JWT_AUDIENCE", client_id).strip(),
        jwt_jwks_url=jwks_url,
        jwt_algorithms=algorithms or ("RS256",),
        http_timeout=_parse_float(_get_env("HTTP_TIMEOUT", "10"), 10.0),
        log_level=_get_env("LOG_LEVEL", "info").strip().lower(),
        log_json=_parse_bool(_get_env("LOG_JSON", "true"), True),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=int(_parse_float(_get_env("PORT", "8000"), 8000)),
    )

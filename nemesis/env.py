"""Startup configuration for the Nemesis API.

The raw process environment is read once, environment-prefixed overrides
(``DEV_``, ``PROD_``, ``SERVER_``) are applied into a new mapping and the
result is frozen into a :class:`Config`. Settings are built from that
object; nothing else should read ``os.environ`` directly.
"""
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import timedelta

logger = logging.getLogger(__name__)

ENV_PREFIXES = {
    "development": "DEV_",
    "production": "PROD_",
    "server": "SERVER_",
}

# Variables that commonly differ between environments
MAPPED_VARIABLES = (
    "DATABASE_URL",
    "CLIENT_URL",
    "PORT",
    "STRIPE_WEBHOOK_SECRET",
    "RESEND_API_KEY",
    "EMAIL_FROM",
)

REQUIRED_VARIABLES = ("DATABASE_URL", "TOKEN_SECRET")

OPTIONAL_VARIABLES = (
    "PORT",
    "APP_ENV",
    "CLIENT_URL",
    "JWT_EXPIRES_IN",
    "RESEND_API_KEY",
    "EMAIL_FROM",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "R2_ENDPOINT",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET_NAME",
    "R2_PUBLIC_URL",
    "CLOUDINARY_CLOUD_NAME",
    "CLOUDINARY_API_KEY",
    "CLOUDINARY_API_SECRET",
)

MIN_SECRET_LENGTH = 32
DEFAULT_JWT_EXPIRES_IN = "7d"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "": "seconds"}


def get_app_env(environ) -> str:
    return environ.get("APP_ENV") or environ.get("NODE_ENV") or "development"


def map_env_variables(environ=None) -> dict:
    """Return a copy of ``environ`` with environment-prefixed overrides applied.

    With ``APP_ENV=production`` a non-empty ``PROD_CLIENT_URL`` replaces
    ``CLIENT_URL`` in the result. Unknown environments get no mapping.
    """
    if environ is None:
        environ = os.environ
    mapped = dict(environ)
    env = get_app_env(mapped)
    prefix = ENV_PREFIXES.get(env)
    if not prefix:
        return mapped

    for name in MAPPED_VARIABLES:
        specific = f"{prefix}{name}"
        if mapped.get(specific):
            logger.info("Overriding %s with %s for %s mode", name, specific, env)
            mapped[name] = mapped[specific]
    return mapped


def validate_env(environ=None):
    """Exit the process when required variables are missing.

    Missing optional variables and a short ``TOKEN_SECRET`` are reported as
    warnings only.
    """
    if environ is None:
        environ = map_env_variables()

    missing = [name for name in REQUIRED_VARIABLES if not environ.get(name)]
    if missing:
        logger.error(
            "Missing required environment variables: %s", ", ".join(missing)
        )
        sys.exit(1)

    unset = [name for name in OPTIONAL_VARIABLES if not environ.get(name)]
    if unset:
        logger.warning(
            "Optional environment variables not set: %s", ", ".join(unset)
        )

    if len(environ["TOKEN_SECRET"]) < MIN_SECRET_LENGTH:
        logger.warning(
            "TOKEN_SECRET is shorter than %d characters. Use a longer secret in production.",
            MIN_SECRET_LENGTH,
        )


def parse_duration(value, default=DEFAULT_JWT_EXPIRES_IN) -> timedelta:
    """Parse ``7d``, ``24h``, ``30m``, ``45s`` or plain seconds into a timedelta."""
    match = _DURATION_RE.match(str(value or ""))
    if not match:
        if value:
            logger.warning("Invalid duration %r, using %s", value, default)
        match = _DURATION_RE.match(default)
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _is_production(environ) -> bool:
    return (
        get_app_env(environ) == "production"
        or environ.get("RENDER") == "true"
        or bool(environ.get("RENDER_EXTERNAL_URL"))
    )


def _env_bool(value, default=False) -> bool:
    if value is None or value == "":
        return default
    return str(value).lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    app_env: str
    is_production: bool
    debug: bool
    database_url: str
    token_secret: str
    client_url: str
    port: int
    jwt_expires_in: timedelta
    resend_api_key: str
    email_from: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    cloudinary_cloud_name: str
    cloudinary_api_key: str
    cloudinary_api_secret: str
    log_level: str


def load_config(environ=None) -> Config:
    environ = map_env_variables(environ)
    is_production = _is_production(environ)
    try:
        port = int(environ.get("PORT") or 5005)
    except ValueError:
        logger.warning("Invalid PORT %r, using 5005", environ.get("PORT"))
        port = 5005

    return Config(
        app_env=get_app_env(environ),
        is_production=is_production,
        debug=_env_bool(environ.get("DEBUG"), default=not is_production),
        database_url=(environ.get("DATABASE_URL") or "").strip(),
        token_secret=environ.get("TOKEN_SECRET") or "",
        client_url=(environ.get("CLIENT_URL") or "").rstrip("/"),
        port=port,
        jwt_expires_in=parse_duration(environ.get("JWT_EXPIRES_IN")),
        resend_api_key=environ.get("RESEND_API_KEY") or "",
        email_from=environ.get("EMAIL_FROM") or "Nemesis <onboarding@resend.dev>",
        stripe_secret_key=environ.get("STRIPE_SECRET_KEY") or "",
        stripe_webhook_secret=environ.get("STRIPE_WEBHOOK_SECRET") or "",
        cloudinary_cloud_name=environ.get("CLOUDINARY_CLOUD_NAME") or "",
        cloudinary_api_key=environ.get("CLOUDINARY_API_KEY") or "",
        cloudinary_api_secret=environ.get("CLOUDINARY_API_SECRET") or "",
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
    )

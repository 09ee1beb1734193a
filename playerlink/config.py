"""Configuration management for playerlink.

Centralises environment variable loading and validation logic while keeping the
public API intentionally simple.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional, TypedDict

from playerlink.errors import ConfigurationError

_TRUTHY_VALUES = {"1", "true", "yes", "on"}

DEV_JWT_SECRET = "dev-secret-CHANGE-ME-IN-PRODUCTION"

MAINNET = "mainnet-beta"
DEVNET = "devnet"
LOCALNET = "localnet"

_DEFAULT_RPC_URLS = {
    MAINNET: "https://api.mainnet-beta.solana.com",
    DEVNET: "https://api.devnet.solana.com",
    LOCALNET: "http://127.0.0.1:8899",
}
_CLUSTER_ALIASES = {"mainnet": MAINNET, "main": MAINNET, "dev": DEVNET, "local": LOCALNET, "localhost": LOCALNET}


class AppConfig(TypedDict):
    """Typed representation of the application's configuration."""

    FLASK_SECRET_KEY: Optional[str]
    FLASK_ENV: str
    FLASK_DEBUG: bool
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRES_HOURS: int
    ADMIN_TOKEN: Optional[str]
    SOLANA_CLUSTER: str
    SOLANA_RPC_URL: Optional[str]
    SOLANA_COMMITMENT: str
    PROGRAM_ID: Optional[str]
    PRIVATE_SERVER_WALLET: Optional[str]
    COBX_MINT_MAINNET: Optional[str]
    COBX_MINT_DEVNET: Optional[str]
    WEB2_SALTED_SEEDS: bool
    RATE_LIMIT_ENABLED: bool
    RATE_LIMIT_DEFAULT: str
    FORCE_HTTPS: bool
    LOG_LEVEL: str
    DATABASE_URL: Optional[str]
    DB_HOST: str
    DB_PORT: int
    DB_USER: str
    DB_PASSWORD: Optional[str]
    DB_NAME: str
    REDIS_HOST: Optional[str]
    REDIS_PORT: int
    REDIS_PASSWORD: Optional[str]
    REDIS_DB: int
    REDIS_URL: Optional[str]
    APP_NAME: str
    APP_VERSION: str
    APP_HOST: str
    APP_PORT: int


def as_bool(value: Any, default: bool = False) -> bool:
    """Coerce a config value that may be a bool or an env-style string."""

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY_VALUES


def _get_env_bool(name: str, default: bool) -> bool:
    """Return an environment variable as a boolean."""

    return as_bool(os.getenv(name), default)


def _get_env_int(name: str, default: int) -> int:
    """Return an environment variable as an integer, raising on invalid input."""

    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer (got {raw_value!r})") from exc


def get_config() -> AppConfig:
    """Load application configuration from environment variables."""

    return {
        # Flask Configuration
        "FLASK_SECRET_KEY": os.getenv("FLASK_SECRET_KEY"),
        "FLASK_ENV": os.getenv("FLASK_ENV", "development"),
        "FLASK_DEBUG": _get_env_bool("FLASK_DEBUG", False),
        # JWT Configuration
        "JWT_SECRET": os.getenv("JWT_SECRET", DEV_JWT_SECRET),
        "JWT_ALGORITHM": os.getenv("JWT_ALGORITHM", "HS256"),
        "JWT_EXPIRES_HOURS": _get_env_int("JWT_EXPIRES_HOURS", 24 * 7),
        "ADMIN_TOKEN": os.getenv("ADMIN_TOKEN"),
        # Solana Configuration
        "SOLANA_CLUSTER": os.getenv("SOLANA_CLUSTER", DEVNET),
        "SOLANA_RPC_URL": os.getenv("SOLANA_RPC_URL"),
        "SOLANA_COMMITMENT": os.getenv("SOLANA_COMMITMENT", "confirmed"),
        "PROGRAM_ID": os.getenv("PROGRAM_ID"),
        "PRIVATE_SERVER_WALLET": os.getenv("PRIVATE_SERVER_WALLET"),
        "COBX_MINT_MAINNET": os.getenv("COBX_MINT_MAINNET"),
        "COBX_MINT_DEVNET": os.getenv("COBX_MINT_DEVNET"),
        "WEB2_SALTED_SEEDS": _get_env_bool("WEB2_SALTED_SEEDS", False),
        # Rate Limiting
        "RATE_LIMIT_ENABLED": _get_env_bool("RATE_LIMIT_ENABLED", True),
        "RATE_LIMIT_DEFAULT": os.getenv("RATE_LIMIT_DEFAULT", "100/hour"),
        "FORCE_HTTPS": _get_env_bool(
            "FORCE_HTTPS",
            os.getenv("FLASK_ENV", "development").lower() == "production",
        ),
        # Logging
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        # Database Configuration (REQUIRED for production)
        "DATABASE_URL": os.getenv("DATABASE_URL"),
        "DB_HOST": os.getenv("DB_HOST", "localhost"),
        "DB_PORT": _get_env_int("DB_PORT", 5432),
        "DB_USER": os.getenv("DB_USER", "playerlink"),
        "DB_PASSWORD": os.getenv("DB_PASSWORD"),
        "DB_NAME": os.getenv("DB_NAME", "playerlink"),
        # Redis Configuration (rate limiter storage)
        "REDIS_HOST": os.getenv("REDIS_HOST"),
        "REDIS_PORT": _get_env_int("REDIS_PORT", 6379),
        "REDIS_PASSWORD": os.getenv("REDIS_PASSWORD"),
        "REDIS_DB": _get_env_int("REDIS_DB", 0),
        "REDIS_URL": os.getenv("REDIS_URL") or os.getenv("REDIS_DSN"),
        # Application Settings
        "APP_NAME": os.getenv("APP_NAME", "playerlink"),
        "APP_VERSION": os.getenv("APP_VERSION", "0.1.0"),
        "APP_HOST": os.getenv("APP_HOST", "0.0.0.0"),
        "APP_PORT": _get_env_int("APP_PORT", 5000),
    }


def validate_config(config: Mapping[str, Any]) -> bool:
    """Validate critical configuration values.

    Args:
        config: Configuration mapping to validate.

    Returns:
        True if configuration is valid, raises ValueError otherwise.
    """

    if config.get("FLASK_ENV") == "production":
        if config.get("JWT_SECRET") == DEV_JWT_SECRET:
            raise ValueError("JWT_SECRET must be changed for production!")

        if not config.get("FLASK_SECRET_KEY"):
            raise ValueError("FLASK_SECRET_KEY must be set for production!")

        if not config.get("PRIVATE_SERVER_WALLET"):
            raise ValueError("PRIVATE_SERVER_WALLET must be set for production!")

        if not config.get("ADMIN_TOKEN"):
            raise ValueError("ADMIN_TOKEN must be set for production!")

        if not config.get("DATABASE_URL") and not config.get("DB_PASSWORD"):
            import warnings

            warnings.warn(
                "DATABASE_URL or DB_PASSWORD not set - database connectivity may fail!",
                stacklevel=2,
            )

    return True


def get_cluster(config: Mapping[str, Any]) -> str:
    """Return the normalised Solana cluster name."""

    raw = str(config.get("SOLANA_CLUSTER") or DEVNET).strip().lower()
    return _CLUSTER_ALIASES.get(raw, raw)


def get_rpc_url(config: Mapping[str, Any]) -> str:
    """Return the RPC endpoint, falling back to the public endpoint of the cluster."""

    explicit = config.get("SOLANA_RPC_URL")
    if explicit:
        return str(explicit)

    cluster = get_cluster(config)
    try:
        return _DEFAULT_RPC_URLS[cluster]
    except KeyError:
        raise ConfigurationError(
            "Server configuration error",
            details=f"No SOLANA_RPC_URL set and no default endpoint for cluster: {cluster}",
        ) from None


def get_cobx_mint(config: Mapping[str, Any]) -> str:
    """Return the cOBX mint address configured for the active cluster.

    Raises:
        ConfigurationError: when the mint for the active cluster is not set.
    """

    cluster = get_cluster(config)
    if cluster == MAINNET:
        env_name = "COBX_MINT_MAINNET"
    else:
        env_name = "COBX_MINT_DEVNET"

    candidate = config.get(env_name)
    if not candidate:
        raise ConfigurationError(
            "Server configuration error",
            details=(
                f"cOBX mint not configured for cluster: {cluster}. "
                f"Please ensure {env_name} is set in environment variables."
            ),
        )
    return str(candidate)

"""Registry configuration.

Settings are read from environment variables; a ``.env`` file at the project
root is loaded first.
"""

import logging
import os
import secrets
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_project_root = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class RegistrySettings(BaseModel):
    """Runtime configuration for the registry server."""

    storage_dir: Path = Field(default=Path("storage"), description="Storage root")
    host: str = "0.0.0.0"
    port: int = 4873
    registry_token: str | None = Field(default=None, description="Bearer token required for writes")
    token_file: Path = Field(default=Path("token"), description="Fallback token location")
    public_url: str | None = Field(
        default=None,
        description="Overrides <scheme>://<host> in tarball locators",
    )
    max_tarball_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    max_metadata_bytes: int = Field(default=1024 * 1024, gt=0)
    strict_names: bool = False
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_format: str = "text"
    environment: str = "development"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(env_file: Path | None = None) -> RegistrySettings:
    """Build settings from the environment.

    Args:
        env_file: .env file to load (default: project root .env)
    """
    load_dotenv(env_file or _project_root / ".env")

    cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    return RegistrySettings(
        storage_dir=Path(os.getenv("STORAGE_DIR") or Path.cwd() / "storage"),
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "4873")),
        registry_token=os.getenv("REGISTRY_TOKEN") or None,
        token_file=Path(os.getenv("REGISTRY_TOKEN_FILE") or Path.cwd() / "token"),
        public_url=os.getenv("PUBLIC_URL") or None,
        max_tarball_bytes=int(os.getenv("MAX_TARBALL_BYTES", str(50 * 1024 * 1024))),
        max_metadata_bytes=int(os.getenv("MAX_METADATA_BYTES", str(1024 * 1024))),
        strict_names=_env_bool("REGISTRY_STRICT_NAMES"),
        cors_origins=cors_origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "text"),
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def resolve_token(settings: RegistrySettings) -> str:
    """Token required on write requests.

    Order: REGISTRY_TOKEN, then the token file, then a generated development
    token which is written to the token file for the operator to pick up.
    """
    if settings.registry_token:
        return settings.registry_token

    try:
        token = settings.token_file.read_text(encoding="utf-8").strip()
        if token:
            return token
    except OSError:
        logger.debug(f"No token file at {settings.token_file}")

    token = f"dev-token-{secrets.token_hex(4)}"
    try:
        settings.token_file.write_text(token, encoding="utf-8")
        logger.warning(f"Generated development token and wrote it to {settings.token_file}")
    except OSError as e:
        logger.warning(f"Generated development token but could not write {settings.token_file}: {e}")
    return token

"""Run configuration for postman-sync."""

from pathlib import Path

from pydantic import BaseModel, field_validator

from postman_sync.errors import ConfigError

DEFAULT_BASE_URL = "https://api.getpostman.com"
DEFAULT_SERVICES_DIR = "services"
DEFAULT_MAP_FILE = "postman-map.json"

API_KEY_ENV = "POSTMAN_API_KEY"
WORKSPACE_ENV = "POSTMAN_WORKSPACE_ID"
BASE_URL_ENV = "POSTMAN_API_URL"


class SyncConfig(BaseModel):
    """Everything a sync run needs, passed explicitly to the engine."""

    api_key: str
    workspace_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    root_dir: Path
    services_dir: Path
    map_path: Path
    timeout: float | None = None  # seconds; None waits forever

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def resolve_paths(
    root: Path | None = None,
    services_dir: Path | None = None,
    map_file: Path | None = None,
) -> tuple[Path, Path, Path]:
    """Resolve root, services dir and mapping document; relative paths hang off root."""
    root_dir = Path(root or Path.cwd()).resolve()
    services = Path(services_dir or DEFAULT_SERVICES_DIR)
    mapping = Path(map_file or DEFAULT_MAP_FILE)
    if not services.is_absolute():
        services = root_dir / services
    if not mapping.is_absolute():
        mapping = root_dir / mapping
    return root_dir, services, mapping


def load_config(
    api_key: str | None,
    workspace_id: str | None = None,
    base_url: str | None = None,
    root: Path | None = None,
    services_dir: Path | None = None,
    map_file: Path | None = None,
    timeout: float | None = None,
) -> SyncConfig:
    """Build a SyncConfig. Raises ConfigError when the API key is missing."""
    if not api_key:
        raise ConfigError(f"{API_KEY_ENV} not set")

    root_dir, services, mapping = resolve_paths(root, services_dir, map_file)
    return SyncConfig(
        api_key=api_key,
        workspace_id=workspace_id or "",
        base_url=base_url or DEFAULT_BASE_URL,
        root_dir=root_dir,
        services_dir=services,
        map_path=mapping,
        timeout=timeout,
    )

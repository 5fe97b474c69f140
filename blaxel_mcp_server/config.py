"""Environment-driven configuration for the MCP server.

Values are read once at startup. Command-line flags in ``server.main`` may
override ``read_only`` and ``toolsets`` before tools are registered.
"""
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional

__all__ = [
    "API_ENDPOINTS",
    "Config",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "TOOLSETS",
    "load_config",
    "parse_toolsets",
]

API_ENDPOINTS = {
    "prod": "https://api.blaxel.ai/v0",
    "dev": "https://api.blaxel.dev/v0",
}

DEFAULT_HTTP_TIMEOUT_SECONDS = 20

TOOLSETS = (
    "agents",
    "modelapis",
    "mcpservers",
    "sandboxes",
    "jobs",
    "integrations",
    "users",
    "serviceaccounts",
    "local",
)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return str(environ.get(name, "") or "").strip().lower() in _TRUTHY


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = str(environ.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def parse_toolsets(raw: str) -> FrozenSet[str]:
    """Parse a comma-separated toolset list, dropping blanks."""
    return frozenset(part.strip() for part in str(raw or "").split(",") if part.strip())


@dataclass(frozen=True)
class Config:
    workspace: str = ""
    api_key: str = ""
    env: str = "prod"
    api_endpoint: str = API_ENDPOINTS["prod"]
    read_only: bool = False
    debug: bool = False
    toolsets: FrozenSet[str] = frozenset({"all"})
    cli_path: str = "bl"
    http_timeout: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    log_dir: str = ""

    def toolset_enabled(self, name: str) -> bool:
        return "all" in self.toolsets or name in self.toolsets

    def with_overrides(
        self,
        *,
        read_only: Optional[bool] = None,
        toolsets: Optional[str] = None,
    ) -> "Config":
        changes = {}
        if read_only:
            changes["read_only"] = True
        if toolsets is not None:
            changes["toolsets"] = parse_toolsets(toolsets) or frozenset({"all"})
        return dataclasses.replace(self, **changes) if changes else self


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build a ``Config`` from ``BL_*`` environment variables.

    Missing credentials are not an error here; the API client reports them
    when it is constructed so that tools still register and fail per call.
    """
    env_map = os.environ if environ is None else environ
    env = str(env_map.get("BL_ENV", "") or "prod").strip().lower()
    if env not in API_ENDPOINTS:
        env = "prod"

    api_endpoint = str(env_map.get("BL_API_URL", "") or "").strip() or API_ENDPOINTS[env]

    return Config(
        workspace=str(env_map.get("BL_WORKSPACE", "") or "").strip(),
        api_key=str(env_map.get("BL_API_KEY", "") or "").strip(),
        env=env,
        api_endpoint=api_endpoint.rstrip("/"),
        read_only=_env_flag(env_map, "BL_READ_ONLY"),
        debug=_env_flag(env_map, "BL_DEBUG"),
        toolsets=parse_toolsets(env_map.get("BL_TOOLSETS", "") or "all") or frozenset({"all"}),
        cli_path=str(env_map.get("BL_CLI", "") or "bl").strip() or "bl",
        http_timeout=_env_int(env_map, "BL_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT_SECONDS),
        log_dir=str(env_map.get("LOG_DIR", "") or "").strip(),
    )

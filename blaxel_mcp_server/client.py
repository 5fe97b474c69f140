"""Small JSON-over-HTTPS client for the Blaxel management API.

Each public method maps one remote operation and returns an ``ApiResponse``.
HTTP error statuses come back as responses so handlers can map 404/409
themselves; only transport failures raise (``RemoteCallError``).
"""

from __future__ import annotations

import json
import logging
import os
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

from blaxel_mcp_server import __version__
from blaxel_mcp_server.config import Config
from blaxel_mcp_server.errors import ClientConfigError, RemoteCallError

logger = logging.getLogger(__name__)

HTTP_USER_AGENT = f"blaxel-mcp-server/{__version__}"


def _build_ssl_context() -> Optional[ssl.SSLContext]:
    """Build an SSL context with certifi fallback for reliable HTTPS calls."""
    cert_file = str(os.environ.get("SSL_CERT_FILE", "") or "").strip()
    if cert_file:
        try:
            return ssl.create_default_context(cafile=cert_file)
        except Exception as exc:
            logger.warning("SSL_CERT_FILE %r is not usable: %s", cert_file, exc)

    try:
        import certifi  # type: ignore

        return ssl.create_default_context(cafile=certifi.where())
    except Exception:
        try:
            return ssl.create_default_context()
        except Exception:
            return None


_SSL_CTX = _build_ssl_context()


def _urlopen(req: urllib.request.Request, timeout: int):
    if _SSL_CTX is not None:
        return urllib.request.urlopen(req, timeout=timeout, context=_SSL_CTX)
    return urllib.request.urlopen(req, timeout=timeout)


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def json200(self) -> Any:
        """Decoded body for a 2xx response, ``None`` otherwise."""
        return self.body if self.ok else None


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8") if raw else ""
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _quote(segment: str) -> str:
    return urllib.parse.quote(str(segment), safe="")


class BlaxelClient:
    """Authenticated binding for the workspace-scoped management endpoints."""

    def __init__(self, config: Config) -> None:
        self._base = config.api_endpoint.rstrip("/")
        self._api_key = config.api_key
        self._workspace = config.workspace
        self._timeout = config.http_timeout

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": HTTP_USER_AGENT,
            "Authorization": f"Bearer {self._api_key}",
        }
        if self._workspace:
            headers["X-Blaxel-Workspace"] = self._workspace
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Any] = None,
        *,
        action: str = "call Blaxel API",
    ) -> ApiResponse:
        route = path if path.startswith("/") else f"/{path}"
        url = f"{self._base}{route}"
        if payload is not None:
            headers = self._headers({"Content-Type": "application/json"})
            body = json.dumps(payload).encode("utf-8")
        else:
            headers = self._headers()
            body = None
        req = urllib.request.Request(url=url, method=method.upper(), headers=headers, data=body)
        logger.debug("%s %s", method.upper(), url)
        try:
            with _urlopen(req, timeout=self._timeout) as resp:
                return ApiResponse(status_code=resp.status, body=_decode(resp.read()))
        except urllib.error.HTTPError as exc:
            raw = exc.read() if hasattr(exc, "read") else b""
            logger.debug("%s %s -> HTTP %s", method.upper(), url, exc.code)
            return ApiResponse(status_code=exc.code, body=_decode(raw or b""))
        except urllib.error.URLError as exc:
            raise RemoteCallError(f"failed to {action}: {exc.reason}", cause=exc) from exc
        except (TimeoutError, OSError) as exc:
            raise RemoteCallError(f"failed to {action}: {exc}", cause=exc) from exc

    # -- integrations -----------------------------------------------------

    def list_integration_connections(self) -> ApiResponse:
        return self.request("GET", "/integrations/connections", action="list integrations")

    def get_integration_connection(self, name: str) -> ApiResponse:
        return self.request(
            "GET", f"/integrations/connections/{_quote(name)}", action="get integration"
        )

    def create_integration_connection(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request(
            "POST", "/integrations/connections", body, action="create integration"
        )

    def delete_integration_connection(self, name: str) -> ApiResponse:
        return self.request(
            "DELETE", f"/integrations/connections/{_quote(name)}", action="delete integration"
        )

    def list_integration_connection_models(self, name: str) -> ApiResponse:
        return self.request(
            "GET",
            f"/integrations/connections/{_quote(name)}/models",
            action="list integration models",
        )

    def list_mcp_hub_definitions(self) -> ApiResponse:
        return self.request("GET", "/mcp/hub", action="list MCP Hub definitions")

    # -- service accounts -------------------------------------------------

    def list_service_accounts(self) -> ApiResponse:
        return self.request("GET", "/service_accounts", action="list service accounts")

    def create_service_account(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request("POST", "/service_accounts", body, action="create service account")

    def update_service_account(self, client_id: str, body: Dict[str, Any]) -> ApiResponse:
        return self.request(
            "PUT",
            f"/service_accounts/{_quote(client_id)}",
            body,
            action="update service account",
        )

    def delete_service_account(self, client_id: str) -> ApiResponse:
        return self.request(
            "DELETE", f"/service_accounts/{_quote(client_id)}", action="delete service account"
        )

    # -- sandboxes --------------------------------------------------------

    def list_sandboxes(self) -> ApiResponse:
        return self.request("GET", "/sandboxes", action="list sandboxes")

    def get_sandbox(self, name: str) -> ApiResponse:
        return self.request("GET", f"/sandboxes/{_quote(name)}", action="get sandbox")

    def create_sandbox(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request("POST", "/sandboxes", body, action="create sandbox")

    def delete_sandbox(self, name: str) -> ApiResponse:
        return self.request("DELETE", f"/sandboxes/{_quote(name)}", action="delete sandbox")

    # -- workspace users --------------------------------------------------

    def list_workspace_users(self) -> ApiResponse:
        return self.request("GET", "/users", action="list workspace users")

    def invite_workspace_user(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request("POST", "/users", body, action="invite user")

    def update_workspace_user_role(self, email: str, body: Dict[str, Any]) -> ApiResponse:
        return self.request("PUT", f"/users/{_quote(email)}", body, action="update user role")

    def remove_workspace_user(self, email: str) -> ApiResponse:
        return self.request("DELETE", f"/users/{_quote(email)}", action="remove user")

    # -- agents -----------------------------------------------------------

    def list_agents(self) -> ApiResponse:
        return self.request("GET", "/agents", action="list agents")

    def get_agent(self, name: str) -> ApiResponse:
        return self.request("GET", f"/agents/{_quote(name)}", action="get agent")

    def delete_agent(self, name: str) -> ApiResponse:
        return self.request("DELETE", f"/agents/{_quote(name)}", action="delete agent")

    # -- jobs -------------------------------------------------------------

    def list_jobs(self) -> ApiResponse:
        return self.request("GET", "/jobs", action="list jobs")

    def get_job(self, job_id: str) -> ApiResponse:
        return self.request("GET", f"/jobs/{_quote(job_id)}", action="get job")

    def delete_job(self, job_id: str) -> ApiResponse:
        return self.request("DELETE", f"/jobs/{_quote(job_id)}", action="delete job")

    # -- functions (MCP servers) ------------------------------------------

    def list_functions(self) -> ApiResponse:
        return self.request("GET", "/functions", action="list MCP servers")

    def get_function(self, name: str) -> ApiResponse:
        return self.request("GET", f"/functions/{_quote(name)}", action="get MCP server")

    def create_function(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request("POST", "/functions", body, action="create MCP server")

    def delete_function(self, name: str) -> ApiResponse:
        return self.request("DELETE", f"/functions/{_quote(name)}", action="delete MCP server")

    # -- models (model APIs) ----------------------------------------------

    def list_models(self) -> ApiResponse:
        return self.request("GET", "/models", action="list model APIs")

    def get_model(self, name: str) -> ApiResponse:
        return self.request("GET", f"/models/{_quote(name)}", action="get model API")

    def create_model(self, body: Dict[str, Any]) -> ApiResponse:
        return self.request("POST", "/models", body, action="create model API")

    def delete_model(self, name: str) -> ApiResponse:
        return self.request("DELETE", f"/models/{_quote(name)}", action="delete model API")

    # -- templates --------------------------------------------------------

    def list_templates(self) -> ApiResponse:
        return self.request("GET", "/templates", action="list templates")


def new_sdk_client(config: Config) -> BlaxelClient:
    """Build an authenticated client, or raise ``ClientConfigError``."""
    if not config.api_key:
        raise ClientConfigError("BL_API_KEY is required")
    if not config.api_endpoint:
        raise ClientConfigError("API endpoint is not configured")
    return BlaxelClient(config)

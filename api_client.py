"""
Make API Client for MCP Server

Thin async client for the Make REST API (v2). Every method issues exactly one
HTTP request and returns the parsed JSON body; non-2xx responses are raised as
MakeApiError so the tool layer can report status code and remote message.
"""
import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from config import MakeConfig
from models import (
    Blueprint,
    Connection,
    DataStore,
    DataStoreRecord,
    Hook,
    Organization,
    RunResult,
    Scenario,
    SortDir,
    Team,
    User,
)

logger = logging.getLogger(__name__)

QueryValue = Optional[str | int | float | bool]


class MakeApiError(Exception):
    """Non-2xx response from the Make API"""

    def __init__(self, status_code: int, status_text: str, detail: Optional[str] = None):
        self.status_code = status_code
        self.status_text = status_text
        self.detail = detail
        message = f"Make API Error {status_code}: {status_text}"
        if detail:
            message += f" - {detail}"
        super().__init__(message)


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Pull a human-readable message out of an error body, if it is JSON"""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(body, dict):
        detail = body.get("message") or body.get("detail")
        if detail:
            return str(detail)
    return json.dumps(body)


def _pagination(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    sort_by: Optional[str] = None,
    sort_dir: Optional[SortDir] = None,
) -> dict[str, QueryValue]:
    """Encode pagination under the pg[...] keys the Make API expects"""
    return {
        "pg[limit]": limit,
        "pg[offset]": offset,
        "pg[sortBy]": sort_by,
        "pg[sortDir]": sort_dir,
    }


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class MakeClient:
    """Client for Make API endpoints"""

    def __init__(self, config: MakeConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize API client with configuration.

        Args:
            config: Token, zone and timeout for the Make API
            transport: Optional httpx transport (mock transports in tests)
        """
        self.config = config
        self.base_url = config.base_url
        self.headers = {"Content-Type": "application/json"}
        if config.api_token:
            self.headers["Authorization"] = f"Token {config.api_token}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[dict[str, QueryValue]] = None,
    ) -> Any:
        """
        Make API request.

        Query parameters whose value is None are dropped; 0, "" and False are
        sent as given. The body is sent as JSON unless it is None. An empty success
        body returns None; a body that is not JSON is returned as text.

        Raises:
            MakeApiError: the API answered with a non-2xx status
            httpx.RequestError: the API could not be reached
        """
        client = self._get_client()
        query = _without_none(params) if params else None
        logger.debug("%s %s params=%s", method, path, query)

        response = await client.request(
            method=method,
            url=path,
            params=query or None,
            json=body,
        )

        if not response.is_success:
            error = MakeApiError(
                response.status_code,
                response.reason_phrase or httpx.codes.get_reason_phrase(response.status_code),
                _error_detail(response),
            )
            logger.warning("%s %s failed: %s", method, path, error)
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("%s %s returned a non-JSON body", method, path)
            return response.text

    async def close(self):
        """Close client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ============================================================
    # SCENARIOS
    # ============================================================

    async def list_scenarios(
        self,
        team_id: Optional[int] = None,
        organization_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: Optional[str] = None,
        sort_dir: Optional[SortDir] = None,
    ) -> dict[str, list[Scenario]]:
        params: dict[str, QueryValue] = {"teamId": team_id, "organizationId": organization_id}
        params.update(_pagination(limit, offset, sort_by, sort_dir))
        return await self.request("GET", "/scenarios", params=params)

    async def get_scenario(self, scenario_id: int) -> dict[str, Scenario]:
        return await self.request("GET", f"/scenarios/{scenario_id}")

    async def create_scenario(
        self,
        team_id: int,
        blueprint: str,
        scheduling: str,
        folder_id: Optional[int] = None,
    ) -> dict[str, Scenario]:
        """Create a scenario; the blueprint and scheduling JSON strings are sent as-is"""
        body = _without_none({
            "teamId": team_id,
            "blueprint": blueprint,
            "scheduling": scheduling,
            "folderId": folder_id,
        })
        return await self.request("POST", "/scenarios", body, {"confirmed": True})

    async def update_scenario(
        self,
        scenario_id: int,
        name: Optional[str] = None,
        blueprint: Optional[str] = None,
        scheduling: Optional[str] = None,
        folder_id: Optional[int] = None,
    ) -> dict[str, Scenario]:
        body = _without_none({
            "name": name,
            "blueprint": blueprint,
            "scheduling": scheduling,
            "folderId": folder_id,
        })
        return await self.request("PATCH", f"/scenarios/{scenario_id}", body, {"confirmed": True})

    async def delete_scenario(self, scenario_id: int) -> dict[str, Any]:
        return await self.request("DELETE", f"/scenarios/{scenario_id}")

    async def activate_scenario(self, scenario_id: int) -> dict[str, Any]:
        return await self.request("POST", f"/scenarios/{scenario_id}/start")

    async def deactivate_scenario(self, scenario_id: int) -> dict[str, Any]:
        return await self.request("POST", f"/scenarios/{scenario_id}/stop")

    async def run_scenario(
        self,
        scenario_id: int,
        data: Optional[dict[str, Any]] = None,
        responsive: Optional[bool] = None,
    ) -> RunResult:
        """
        Run a scenario immediately.

        With responsive=True the API waits for the execution to finish
        (up to 40 seconds) and returns its outputs.
        """
        body = _without_none({"data": data, "responsive": responsive})
        return await self.request("POST", f"/scenarios/{scenario_id}/run", body)

    async def clone_scenario(
        self,
        scenario_id: int,
        name: str,
        team_id: int,
        organization_id: int,
        states: bool = False,
    ) -> dict[str, Scenario]:
        body = {"name": name, "teamId": team_id, "states": states}
        return await self.request(
            "POST",
            f"/scenarios/{scenario_id}/clone",
            body,
            {"organizationId": organization_id},
        )

    # ============================================================
    # BLUEPRINTS & INTERFACE
    # ============================================================

    async def get_scenario_blueprint(self, scenario_id: int) -> dict[str, dict[str, Blueprint]]:
        return await self.request("GET", f"/scenarios/{scenario_id}/blueprint")

    async def update_scenario_blueprint(self, scenario_id: int, blueprint: str) -> dict[str, Scenario]:
        return await self.request(
            "PATCH",
            f"/scenarios/{scenario_id}",
            {"blueprint": blueprint},
            {"confirmed": True},
        )

    async def get_scenario_interface(self, scenario_id: int) -> dict[str, Any]:
        return await self.request("GET", f"/scenarios/{scenario_id}/interface")

    async def get_scenario_logs(
        self,
        scenario_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[Any]]:
        return await self.request(
            "GET",
            f"/scenarios/{scenario_id}/logs",
            params=_pagination(limit, offset),
        )

    # ============================================================
    # CONNECTIONS
    # ============================================================

    async def list_connections(
        self,
        team_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[Connection]]:
        params: dict[str, QueryValue] = {"teamId": team_id, **_pagination(limit, offset)}
        return await self.request("GET", "/connections", params=params)

    async def get_connection(self, connection_id: int) -> dict[str, Connection]:
        return await self.request("GET", f"/connections/{connection_id}")

    async def delete_connection(self, connection_id: int) -> dict[str, Any]:
        return await self.request("DELETE", f"/connections/{connection_id}")

    # ============================================================
    # WEBHOOKS (hooks)
    # ============================================================

    async def list_hooks(
        self,
        team_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[Hook]]:
        params: dict[str, QueryValue] = {"teamId": team_id, **_pagination(limit, offset)}
        return await self.request("GET", "/hooks", params=params)

    async def get_hook(self, hook_id: int) -> dict[str, Hook]:
        return await self.request("GET", f"/hooks/{hook_id}")

    async def delete_hook(self, hook_id: int) -> dict[str, Any]:
        return await self.request("DELETE", f"/hooks/{hook_id}")

    # ============================================================
    # DATA STORES
    # ============================================================

    async def list_data_stores(
        self,
        team_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[DataStore]]:
        params: dict[str, QueryValue] = {"teamId": team_id, **_pagination(limit, offset)}
        return await self.request("GET", "/data-stores", params=params)

    async def get_data_store(self, data_store_id: int) -> dict[str, DataStore]:
        return await self.request("GET", f"/data-stores/{data_store_id}")

    async def create_data_store(
        self,
        team_id: int,
        name: str,
        max_size: Optional[int] = None,
        data_structure_id: Optional[int] = None,
    ) -> dict[str, DataStore]:
        """Create a data store; max_size is in megabytes"""
        body = _without_none({
            "teamId": team_id,
            "name": name,
            "maxSizeMB": max_size,
            "dataStructureId": data_structure_id,
        })
        return await self.request("POST", "/data-stores", body)

    async def delete_data_store(self, data_store_id: int) -> dict[str, Any]:
        return await self.request("DELETE", f"/data-stores/{data_store_id}")

    # ============================================================
    # DATA STORE RECORDS
    # ============================================================

    async def list_data_store_records(
        self,
        data_store_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[DataStoreRecord]]:
        return await self.request(
            "GET",
            f"/data-stores/{data_store_id}/data",
            params=_pagination(limit, offset),
        )

    async def create_data_store_record(
        self, data_store_id: int, data: DataStoreRecord
    ) -> dict[str, DataStoreRecord]:
        return await self.request("POST", f"/data-stores/{data_store_id}/data", data)

    async def update_data_store_record(
        self, data_store_id: int, record_key: str, data: DataStoreRecord
    ) -> dict[str, DataStoreRecord]:
        return await self.request(
            "PUT",
            f"/data-stores/{data_store_id}/data/{quote(record_key, safe='')}",
            data,
        )

    async def delete_data_store_record(self, data_store_id: int, record_key: str) -> Any:
        return await self.request(
            "DELETE",
            f"/data-stores/{data_store_id}/data/{quote(record_key, safe='')}",
        )

    # ============================================================
    # TEAMS, ORGANIZATIONS, USER
    # ============================================================

    async def list_teams(
        self,
        organization_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[Team]]:
        params: dict[str, QueryValue] = {
            "organizationId": organization_id,
            **_pagination(limit, offset),
        }
        return await self.request("GET", "/teams", params=params)

    async def get_team(self, team_id: int) -> dict[str, Team]:
        return await self.request("GET", f"/teams/{team_id}")

    async def list_organizations(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> dict[str, list[Organization]]:
        return await self.request("GET", "/organizations", params=_pagination(limit, offset))

    async def get_organization(self, organization_id: int) -> dict[str, Organization]:
        return await self.request("GET", f"/organizations/{organization_id}")

    async def get_current_user(self) -> dict[str, User]:
        return await self.request("GET", "/users/me")

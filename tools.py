"""
Make MCP tool catalog and dispatcher

Each tool is registered once with @tool: a name, a description, a pydantic
model describing its arguments, and a handler that makes exactly one Make API
call. The dispatcher validates incoming arguments against that model, runs the
handler and wraps the outcome in a ToolResult (one text block, pretty-printed
JSON on success, an error-flagged message otherwise).
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fastmcp.tools import ToolResult
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from api_client import MakeApiError, MakeClient
from models import SortDir

logger = logging.getLogger(__name__)


class InvalidArgumentsError(ValueError):
    """Tool arguments did not match the tool's declared input schema"""

    def __init__(self, tool_name: str, problems: list[str]):
        self.tool_name = tool_name
        self.problems = problems
        super().__init__(f"Invalid arguments for {tool_name}: {'; '.join(problems)}")


# ============================================================
# ARGUMENT MODELS
# ============================================================

class ToolArguments(BaseModel):
    """Base for tool arguments; fields are exposed to callers in camelCase.

    Validation is strict: values must already have the JSON type the input
    schema declares (no true -> 1, no "42" -> 42).
    """

    model_config = ConfigDict(alias_generator=to_camel, strict=True)


class NoArguments(ToolArguments):
    pass


class Paging(ToolArguments):
    limit: Optional[int] = Field(None, ge=0, description="Max results")
    offset: Optional[int] = Field(None, ge=0, description="Pagination offset")


class ScenarioRef(ToolArguments):
    scenario_id: int = Field(description="Scenario ID")


class ListScenariosArgs(Paging):
    team_id: Optional[int] = Field(None, description="Team ID (required if no organizationId)")
    organization_id: Optional[int] = Field(
        None, description="Organization ID (required if no teamId)"
    )
    sort_by: Optional[str] = Field(None, description="Field to sort by")
    sort_dir: Optional[SortDir] = Field(None, description="Sort direction")


class CreateScenarioArgs(ToolArguments):
    team_id: int = Field(description="Team ID where to create the scenario")
    blueprint: str = Field(description="JSON string of the scenario blueprint with flow array")
    scheduling: str = Field(
        description=(
            "Scheduling config JSON. Use '{\"type\":\"on-demand\"}' for manual trigger or "
            "'{\"type\":\"indefinitely\",\"interval\":15}' for scheduled (interval in minutes)"
        )
    )
    folder_id: Optional[int] = Field(None, description="Optional folder ID")


class UpdateScenarioArgs(ScenarioRef):
    name: Optional[str] = Field(None, description="New scenario name")
    blueprint: Optional[str] = Field(None, description="New blueprint JSON string")
    scheduling: Optional[str] = Field(None, description="New scheduling config JSON")
    folder_id: Optional[int] = Field(None, description="New folder ID")


class RunScenarioArgs(ScenarioRef):
    data: Optional[dict[str, Any]] = Field(None, description="Input data for scenario inputs")
    responsive: Optional[bool] = Field(None, description="Wait for result (max 40s)")


class CloneScenarioArgs(ScenarioRef):
    name: str = Field(description="Name for the clone")
    team_id: int = Field(description="Target team ID")
    organization_id: int = Field(description="Organization ID")
    states: bool = Field(False, description="Also copy the scenario's stored state")


class UpdateBlueprintArgs(ScenarioRef):
    blueprint: str = Field(description="Blueprint JSON string")


class ScenarioLogsArgs(ScenarioRef, Paging):
    pass


class TeamPaging(Paging):
    team_id: int = Field(description="Team ID")


class ConnectionRef(ToolArguments):
    connection_id: int = Field(description="Connection ID")


class HookRef(ToolArguments):
    hook_id: int = Field(description="Webhook ID")


class DataStoreRef(ToolArguments):
    data_store_id: int = Field(description="Data Store ID")


class DataStorePaging(DataStoreRef, Paging):
    pass


class CreateDataStoreArgs(ToolArguments):
    team_id: int = Field(description="Team ID")
    name: str = Field(description="Data store name")
    max_size: Optional[int] = Field(None, ge=1, description="Max size in MB")
    data_structure_id: Optional[int] = Field(
        None, description="Data structure defining the record fields"
    )


class CreateRecordArgs(DataStoreRef):
    data: dict[str, Any] = Field(description="Record data")


class RecordRef(DataStoreRef):
    record_key: str = Field(description="Record key")


class UpdateRecordArgs(RecordRef):
    data: dict[str, Any] = Field(description="Record data replacing the stored record")


class OrganizationPaging(Paging):
    organization_id: int = Field(description="Organization ID")


class TeamRef(ToolArguments):
    team_id: int = Field(description="Team ID")


class OrganizationRef(ToolArguments):
    organization_id: int = Field(description="Organization ID")


# ============================================================
# REGISTRY
# ============================================================

Handler = Callable[[MakeClient, Any], Awaitable[Any]]


def _clean_schema(node: Any) -> Any:
    """Strip pydantic noise (titles, null defaults, Optional unions) from a JSON schema"""
    if isinstance(node, list):
        return [_clean_schema(item) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned = {key: _clean_schema(value) for key, value in node.items() if key != "title"}
    if "default" in cleaned and cleaned["default"] is None:
        del cleaned["default"]

    variants = cleaned.get("anyOf")
    if variants:
        concrete = [v for v in variants if v.get("type") != "null"]
        if len(concrete) == 1 and len(concrete) < len(variants):
            del cleaned["anyOf"]
            cleaned = {**concrete[0], **cleaned}
    return cleaned


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    description: str
    arguments: type[ToolArguments]
    handler: Handler

    def input_schema(self) -> dict[str, Any]:
        schema = _clean_schema(self.arguments.model_json_schema(by_alias=True))
        schema.setdefault("properties", {})
        return schema

    def required_arguments(self) -> set[str]:
        return {
            field.alias or name
            for name, field in self.arguments.model_fields.items()
            if field.is_required()
        }

    def parse(self, arguments: Optional[dict[str, Any]]) -> ToolArguments:
        """Validate raw arguments; absent optional fields stay None"""
        try:
            return self.arguments.model_validate(arguments or {})
        except ValidationError as e:
            problems = []
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "arguments"
                if error["type"] == "missing":
                    problems.append(f"missing required argument '{field}'")
                else:
                    problems.append(f"'{field}': {error['msg']}")
            raise InvalidArgumentsError(self.name, problems) from e


TOOLS: dict[str, CatalogEntry] = {}


def tool(name: str, description: str, arguments: type[ToolArguments] = NoArguments):
    """Register a handler in the tool catalog"""

    def register(handler: Handler) -> Handler:
        if name in TOOLS:
            raise ValueError(f"Tool already registered: {name}")
        TOOLS[name] = CatalogEntry(name, description, arguments, handler)
        return handler

    return register


# ============================================================
# SCENARIOS TOOLS
# ============================================================

@tool("list_scenarios", "List all scenarios for a team or organization", ListScenariosArgs)
async def list_scenarios(client: MakeClient, args: ListScenariosArgs):
    return await client.list_scenarios(
        team_id=args.team_id,
        organization_id=args.organization_id,
        limit=args.limit,
        offset=args.offset,
        sort_by=args.sort_by,
        sort_dir=args.sort_dir,
    )


@tool("get_scenario", "Get details of a specific scenario", ScenarioRef)
async def get_scenario(client: MakeClient, args: ScenarioRef):
    return await client.get_scenario(args.scenario_id)


@tool(
    "create_scenario",
    "Create a new scenario with a blueprint. "
    "The blueprint defines the workflow modules and their connections.",
    CreateScenarioArgs,
)
async def create_scenario(client: MakeClient, args: CreateScenarioArgs):
    return await client.create_scenario(
        team_id=args.team_id,
        blueprint=args.blueprint,
        scheduling=args.scheduling,
        folder_id=args.folder_id,
    )


@tool(
    "update_scenario",
    "Update an existing scenario (name, blueprint, scheduling, folder)",
    UpdateScenarioArgs,
)
async def update_scenario(client: MakeClient, args: UpdateScenarioArgs):
    return await client.update_scenario(
        args.scenario_id,
        name=args.name,
        blueprint=args.blueprint,
        scheduling=args.scheduling,
        folder_id=args.folder_id,
    )


@tool("delete_scenario", "Delete a scenario permanently", ScenarioRef)
async def delete_scenario(client: MakeClient, args: ScenarioRef):
    return await client.delete_scenario(args.scenario_id)


@tool("activate_scenario", "Activate a scenario so it can run", ScenarioRef)
async def activate_scenario(client: MakeClient, args: ScenarioRef):
    return await client.activate_scenario(args.scenario_id)


@tool("deactivate_scenario", "Deactivate a scenario to stop it from running", ScenarioRef)
async def deactivate_scenario(client: MakeClient, args: ScenarioRef):
    return await client.deactivate_scenario(args.scenario_id)


@tool(
    "run_scenario",
    "Run a scenario immediately. Scenario must be active and set to on-demand scheduling.",
    RunScenarioArgs,
)
async def run_scenario(client: MakeClient, args: RunScenarioArgs):
    return await client.run_scenario(args.scenario_id, data=args.data, responsive=args.responsive)


@tool("clone_scenario", "Clone/duplicate a scenario", CloneScenarioArgs)
async def clone_scenario(client: MakeClient, args: CloneScenarioArgs):
    return await client.clone_scenario(
        args.scenario_id,
        name=args.name,
        team_id=args.team_id,
        organization_id=args.organization_id,
        states=args.states,
    )


@tool(
    "get_scenario_blueprint",
    "Get the full blueprint (flow definition) of a scenario",
    ScenarioRef,
)
async def get_scenario_blueprint(client: MakeClient, args: ScenarioRef):
    return await client.get_scenario_blueprint(args.scenario_id)


@tool(
    "update_scenario_blueprint",
    "Replace the blueprint (flow definition) of a scenario",
    UpdateBlueprintArgs,
)
async def update_scenario_blueprint(client: MakeClient, args: UpdateBlueprintArgs):
    return await client.update_scenario_blueprint(args.scenario_id, args.blueprint)


@tool(
    "get_scenario_interface",
    "Get the input and output interface of a scenario",
    ScenarioRef,
)
async def get_scenario_interface(client: MakeClient, args: ScenarioRef):
    return await client.get_scenario_interface(args.scenario_id)


@tool("get_scenario_logs", "Get execution logs for a scenario", ScenarioLogsArgs)
async def get_scenario_logs(client: MakeClient, args: ScenarioLogsArgs):
    return await client.get_scenario_logs(args.scenario_id, limit=args.limit, offset=args.offset)


# ============================================================
# CONNECTIONS & WEBHOOKS TOOLS
# ============================================================

@tool("list_connections", "List all connections (API credentials) for a team", TeamPaging)
async def list_connections(client: MakeClient, args: TeamPaging):
    return await client.list_connections(args.team_id, limit=args.limit, offset=args.offset)


@tool("get_connection", "Get details of a connection", ConnectionRef)
async def get_connection(client: MakeClient, args: ConnectionRef):
    return await client.get_connection(args.connection_id)


@tool("delete_connection", "Delete a connection permanently", ConnectionRef)
async def delete_connection(client: MakeClient, args: ConnectionRef):
    return await client.delete_connection(args.connection_id)


@tool("list_hooks", "List all webhooks for a team", TeamPaging)
async def list_hooks(client: MakeClient, args: TeamPaging):
    return await client.list_hooks(args.team_id, limit=args.limit, offset=args.offset)


@tool("get_hook", "Get details of a webhook", HookRef)
async def get_hook(client: MakeClient, args: HookRef):
    return await client.get_hook(args.hook_id)


@tool("delete_hook", "Delete a webhook permanently", HookRef)
async def delete_hook(client: MakeClient, args: HookRef):
    return await client.delete_hook(args.hook_id)


# ============================================================
# DATA STORES TOOLS
# ============================================================

@tool("list_data_stores", "List all data stores for a team", TeamPaging)
async def list_data_stores(client: MakeClient, args: TeamPaging):
    return await client.list_data_stores(args.team_id, limit=args.limit, offset=args.offset)


@tool("get_data_store", "Get details of a data store", DataStoreRef)
async def get_data_store(client: MakeClient, args: DataStoreRef):
    return await client.get_data_store(args.data_store_id)


@tool("create_data_store", "Create a new data store", CreateDataStoreArgs)
async def create_data_store(client: MakeClient, args: CreateDataStoreArgs):
    return await client.create_data_store(
        args.team_id,
        args.name,
        max_size=args.max_size,
        data_structure_id=args.data_structure_id,
    )


@tool("delete_data_store", "Delete a data store and all of its records", DataStoreRef)
async def delete_data_store(client: MakeClient, args: DataStoreRef):
    return await client.delete_data_store(args.data_store_id)


@tool("list_data_store_records", "List records in a data store", DataStorePaging)
async def list_data_store_records(client: MakeClient, args: DataStorePaging):
    return await client.list_data_store_records(
        args.data_store_id, limit=args.limit, offset=args.offset
    )


@tool("create_data_store_record", "Create a record in a data store", CreateRecordArgs)
async def create_data_store_record(client: MakeClient, args: CreateRecordArgs):
    return await client.create_data_store_record(args.data_store_id, args.data)


@tool("update_data_store_record", "Replace a record in a data store", UpdateRecordArgs)
async def update_data_store_record(client: MakeClient, args: UpdateRecordArgs):
    return await client.update_data_store_record(args.data_store_id, args.record_key, args.data)


@tool("delete_data_store_record", "Delete a record from a data store", RecordRef)
async def delete_data_store_record(client: MakeClient, args: RecordRef):
    return await client.delete_data_store_record(args.data_store_id, args.record_key)


# ============================================================
# ORGANIZATION TOOLS
# ============================================================

@tool("list_teams", "List all teams in an organization", OrganizationPaging)
async def list_teams(client: MakeClient, args: OrganizationPaging):
    return await client.list_teams(args.organization_id, limit=args.limit, offset=args.offset)


@tool("get_team", "Get details of a team", TeamRef)
async def get_team(client: MakeClient, args: TeamRef):
    return await client.get_team(args.team_id)


@tool("list_organizations", "List all organizations the user has access to", Paging)
async def list_organizations(client: MakeClient, args: Paging):
    return await client.list_organizations(limit=args.limit, offset=args.offset)


@tool("get_organization", "Get details of an organization", OrganizationRef)
async def get_organization(client: MakeClient, args: OrganizationRef):
    return await client.get_organization(args.organization_id)


@tool("get_current_user", "Get information about the authenticated user")
async def get_current_user(client: MakeClient, args: NoArguments):
    return await client.get_current_user()


# ============================================================
# DISPATCHER
# ============================================================

def _error_result(message: str) -> ToolResult:
    return ToolResult(content=message, is_error=True)


class ToolDispatcher:
    """Routes (tool name, arguments) pairs to one Make API call each"""

    def __init__(self, client: MakeClient, tools: Optional[dict[str, CatalogEntry]] = None):
        self.client = client
        self.tools = TOOLS if tools is None else tools

    def list_tools(self) -> list[dict[str, Any]]:
        """Name, description and input schema of every registered tool"""
        return [
            {
                "name": entry.name,
                "description": entry.description,
                "inputSchema": entry.input_schema(),
            }
            for entry in self.tools.values()
        ]

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        """
        Invoke a tool.

        Unknown tools, invalid arguments and Make API errors come back as
        error-flagged results. Anything else (network failures, bugs) is raised.
        """
        entry = self.tools.get(name)
        if entry is None:
            logger.warning("Unknown tool requested: %s", name)
            return _error_result(f"Unknown tool: {name}")

        try:
            args = entry.parse(arguments)
        except InvalidArgumentsError as e:
            logger.warning("%s", e)
            return _error_result(str(e))

        logger.debug("Calling tool %s", name)
        try:
            result = await entry.handler(self.client, args)
        except MakeApiError as e:
            return _error_result(str(e))

        return ToolResult(content=json.dumps(result, indent=2, ensure_ascii=False))

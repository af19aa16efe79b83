from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from tools import TOOLS, InvalidArgumentsError, ToolDispatcher

CORE_TOOLS = {
    "list_scenarios",
    "get_scenario",
    "create_scenario",
    "update_scenario",
    "delete_scenario",
    "activate_scenario",
    "deactivate_scenario",
    "run_scenario",
    "clone_scenario",
    "get_scenario_blueprint",
    "get_scenario_logs",
    "list_connections",
    "list_hooks",
    "list_data_stores",
    "get_data_store",
    "create_data_store",
    "list_data_store_records",
    "create_data_store_record",
    "list_teams",
    "list_organizations",
    "get_current_user",
}


def _not_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Make API should not be called: {request.method} {request.url}")


def _text(result) -> str:
    assert len(result.content) == 1
    assert result.content[0].type == "text"
    return result.content[0].text


def test_catalog_lists_every_tool_once(make_client):
    client, _ = make_client(_not_called)
    names = [entry["name"] for entry in ToolDispatcher(client).list_tools()]

    assert len(names) == len(set(names))
    assert CORE_TOOLS <= set(names)
    assert set(names) == set(TOOLS)


def test_declared_required_fields_match_argument_models(make_client):
    client, _ = make_client(_not_called)

    for entry in ToolDispatcher(client).list_tools():
        declared = set(entry["inputSchema"].get("required", []))
        assert declared == TOOLS[entry["name"]].required_arguments(), entry["name"]
        assert entry["inputSchema"]["type"] == "object"
        assert entry["description"]


@pytest.mark.parametrize(
    ("name", "required"),
    [
        ("list_scenarios", set()),
        ("get_scenario", {"scenarioId"}),
        ("create_scenario", {"teamId", "blueprint", "scheduling"}),
        ("clone_scenario", {"scenarioId", "name", "teamId", "organizationId"}),
        ("create_data_store_record", {"dataStoreId", "data"}),
        ("list_teams", {"organizationId"}),
        ("get_current_user", set()),
    ],
)
def test_required_fields_use_camel_case_names(name, required):
    assert TOOLS[name].required_arguments() == required


def test_input_schema_declares_field_types():
    run_schema = TOOLS["run_scenario"].input_schema()["properties"]
    assert run_schema["scenarioId"]["type"] == "integer"
    assert run_schema["data"]["type"] == "object"
    assert run_schema["responsive"]["type"] == "boolean"
    assert run_schema["responsive"]["description"] == "Wait for result (max 40s)"

    list_schema = TOOLS["list_scenarios"].input_schema()["properties"]
    assert list_schema["sortDir"]["enum"] == ["asc", "desc"]
    assert list_schema["offset"]["type"] == "integer"
    assert "anyOf" not in list_schema["teamId"]

    assert TOOLS["get_current_user"].input_schema()["properties"] == {}


def test_parse_reports_missing_required_argument():
    with pytest.raises(InvalidArgumentsError) as exc_info:
        TOOLS["clone_scenario"].parse({"scenarioId": 1, "name": "Copy"})

    assert exc_info.value.tool_name == "clone_scenario"
    assert "missing required argument 'teamId'" in exc_info.value.problems
    assert "missing required argument 'organizationId'" in exc_info.value.problems


def test_parse_leaves_absent_optionals_unset():
    args = TOOLS["update_scenario"].parse({"scenarioId": 3, "name": "New"})

    assert args.scenario_id == 3
    assert args.name == "New"
    assert args.blueprint is None
    assert args.folder_id is None


@pytest.mark.asyncio
async def test_unknown_tool_returns_error_result(make_client):
    client, _ = make_client(_not_called)

    result = await ToolDispatcher(client).call_tool("launch_rocket", {"scenarioId": 1})

    assert result.is_error is True
    assert _text(result) == "Unknown tool: launch_rocket"


@pytest.mark.asyncio
async def test_missing_required_argument_is_rejected_before_request(make_client):
    client, transport = make_client(_not_called)

    result = await ToolDispatcher(client).call_tool("get_scenario", {})

    assert result.is_error is True
    assert "missing required argument 'scenarioId'" in _text(result)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_wrong_argument_type_is_rejected(make_client):
    client, transport = make_client(_not_called)

    result = await ToolDispatcher(client).call_tool("create_data_store_record", {"dataStoreId": 1, "data": "nope"})

    assert result.is_error is True
    assert "Invalid arguments for create_data_store_record" in _text(result)
    assert "'data'" in _text(result)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_run_scenario_returns_pretty_printed_result(make_client):
    remote = {"executionId": "abc123", "status": "success"}
    client, transport = make_client(lambda request: httpx.Response(200, json=remote))

    result = await ToolDispatcher(client).call_tool("run_scenario", {"scenarioId": 42})

    assert result.is_error is False
    assert _text(result) == json.dumps(remote, indent=2)
    request = transport.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v2/scenarios/42/run"
    assert json.loads(request.content) == {}


@pytest.mark.asyncio
async def test_run_scenario_forwards_inputs(make_client):
    client, transport = make_client(lambda request: httpx.Response(200, json={"executionId": "x"}))

    await ToolDispatcher(client).call_tool(
        "run_scenario", {"scenarioId": 42, "data": {"email": "a@b.co"}, "responsive": True}
    )

    assert json.loads(transport.requests[0].content) == {"data": {"email": "a@b.co"}, "responsive": True}


@pytest.mark.asyncio
async def test_api_error_becomes_error_result(make_client):
    client, _ = make_client(lambda request: httpx.Response(404, json={"message": "Scenario not found"}))

    result = await ToolDispatcher(client).call_tool("get_scenario", {"scenarioId": 999})

    assert result.is_error is True
    text = _text(result)
    assert "404" in text
    assert "Scenario not found" in text


@pytest.mark.asyncio
async def test_zero_offset_is_forwarded(make_client):
    client, transport = make_client(lambda request: httpx.Response(200, json={"teams": []}))

    await ToolDispatcher(client).call_tool("list_teams", {"organizationId": 1, "offset": 0})

    params = transport.requests[0].url.params
    assert params["pg[offset]"] == "0"
    assert "pg[limit]" not in params


@pytest.mark.asyncio
async def test_unexpected_failures_propagate(make_client):
    def _unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(_unreachable)

    with pytest.raises(httpx.ConnectError):
        await ToolDispatcher(client).call_tool("get_current_user", {})


@pytest.mark.asyncio
async def test_created_record_is_listed(make_client):
    stored: dict[int, list[dict[str, Any]]] = {}

    def _data_store_api(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v2/data-stores/17/data"
        records = stored.setdefault(17, [])
        if request.method == "POST":
            record = json.loads(request.content)
            records.append(record)
            return httpx.Response(200, json={"record": record})
        return httpx.Response(200, json={"records": records})

    client, _ = make_client(_data_store_api)
    dispatcher = ToolDispatcher(client)
    record = {"key": "lead-1", "email": "ada@example.com"}

    created = await dispatcher.call_tool("create_data_store_record", {"dataStoreId": 17, "data": record})
    listed = await dispatcher.call_tool("list_data_store_records", {"dataStoreId": 17})

    assert created.is_error is False
    assert record in json.loads(_text(listed))["records"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("name", "arguments"),
    [
        ("delete_scenario", {"scenarioId": True}),
        ("get_scenario", {"scenarioId": "42"}),
        ("list_teams", {"organizationId": 1, "limit": False}),
        ("run_scenario", {"scenarioId": 42, "responsive": "yes"}),
    ],
)
async def test_mistyped_arguments_are_rejected_before_request(make_client, name, arguments):
    client, transport = make_client(_not_called)

    result = await ToolDispatcher(client).call_tool(name, arguments)

    assert result.is_error is True
    assert f"Invalid arguments for {name}" in _text(result)
    assert transport.requests == []

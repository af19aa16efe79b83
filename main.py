"""
Make MCP Server - FastMCP Implementation

Exposes the Make.com API (scenarios, blueprints, connections, webhooks, data
stores, teams and organizations) as MCP tools. The tool catalog lives in
tools.py; this module adapts it to FastMCP and runs the server over stdio
(default) or HTTP.
"""
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from fastmcp.tools import Tool, ToolResult

from api_client import MakeClient
from config import MakeConfig, load_config
from tools import ToolDispatcher

logger = logging.getLogger(__name__)


class CatalogTool(Tool):
    """FastMCP tool backed by an entry of the Make tool catalog"""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        name: str,
        description: str,
        parameters: dict[str, Any],
    ):
        super().__init__(name=name, description=description, parameters=parameters)
        self._dispatcher = dispatcher

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        return await self._dispatcher.call_tool(self.name, arguments)


def closing_client(client: MakeClient):
    """Server lifespan that releases the Make connection pool on shutdown"""

    @asynccontextmanager
    async def lifespan(server: FastMCP):
        try:
            yield {}
        finally:
            await client.close()

    return lifespan


def build_server(config: MakeConfig, client: MakeClient | None = None) -> FastMCP:
    """Create the FastMCP server with every catalog tool registered"""
    client = client or MakeClient(config)
    dispatcher = ToolDispatcher(client)
    mcp = FastMCP("Make", lifespan=closing_client(client))
    for entry in dispatcher.list_tools():
        mcp.add_tool(
            CatalogTool(
                dispatcher,
                name=entry["name"],
                description=entry["description"],
                parameters=entry["inputSchema"],
            )
        )
    logger.info("Registered %d Make tools (zone %s)", len(dispatcher.tools), config.zone)
    return mcp


def configure_logging(level: str | None = None):
    """Log to stderr only; stdout carries the MCP stdio stream"""
    logging.basicConfig(
        level=(level or os.getenv("MAKE_LOG_LEVEL", "INFO")).upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
    )


def main():
    configure_logging()
    config = load_config()
    transport = os.getenv("MAKE_MCP_TRANSPORT", "stdio").lower()

    if transport == "http":
        if not config.api_token:
            logger.warning("MAKE_API_TOKEN is not set; Make API calls will be unauthenticated")
        port = int(os.getenv("PORT", 8000))
        build_server(config).run(transport="http", host=os.getenv("HOST", "0.0.0.0"), port=port)
        return

    if not config.api_token:
        logger.error("MAKE_API_TOKEN environment variable is required")
        sys.exit(1)
    build_server(config).run(transport="stdio", show_banner=False)


# ============================================================
# SERVER STARTUP
# ============================================================

if __name__ == "__main__":
    main()

"""
MCP Server - diff-gated file tools
==================================

Exposes the file tools over the Model Context Protocol on stdio. Edit and
Write calls block (cooperatively) until the change is approved, rejected or
times out in the reviewing editor; every call returns text content, never a
protocol-level fault.

stdout is the protocol channel: nothing in this process may print to it.
"""

import asyncio
import logging
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.lowlevel import NotificationOptions
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server

from diffgate.approval.handshake import ApprovalHandshake
from diffgate.approval.mailbox import MailboxStore
from diffgate.config.settings import Settings
from diffgate.tools import ToolRegistry, create_file_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "diffgate"


class DiffGateMCPServer:
    """
    MCP server wiring the mailbox, the approval handshake and the file tools.

    One instance owns one handshake coordinator and therefore one pending
    registry; nothing is shared through module globals.
    """

    def __init__(self, settings: Settings | None = None, tool_registry: ToolRegistry | None = None):
        """
        Initialize MCP server.

        Args:
            settings: Application settings (environment-only settings when omitted)
            tool_registry: Optional prebuilt registry, mainly for tests
        """
        self.settings = settings or Settings()
        self.mailbox = MailboxStore(
            self.settings.resolved_mailbox_dir(),
            poll_interval=self.settings.mailbox.poll_interval,
        )
        self.handshake = ApprovalHandshake(
            self.mailbox,
            deadline=self.settings.approval.timeout_seconds,
            fingerprint_length=self.settings.approval.fingerprint_length,
        )
        self.tool_registry = tool_registry or create_file_tools(self.handshake)
        self.server = Server(SERVER_NAME)
        self._setup_handlers()

        logger.info("MCP server initialized (mailbox: %s)", self.mailbox.directory)

    def _setup_handlers(self) -> None:
        self.server.list_tools()(self.list_tools)
        self.server.call_tool()(self.call_tool)

    async def list_tools(self) -> list[types.Tool]:
        tools = [
            types.Tool(
                name=name,
                description=tool.metadata.description,
                inputSchema=tool.input_schema(),
            )
            for name, tool in self.tool_registry.list_tools().items()
        ]
        logger.debug("Listed %s tools", len(tools))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        try:
            result = await self.tool_registry.execute(name, arguments)
        except Exception as e:
            logger.exception("Tool execution failed: %s", name)
            return [types.TextContent(type="text", text=f"Error: {e}")]

        text = result["result"] if result.get("success") else result.get("error", "Unknown error")
        return [types.TextContent(type="text", text=str(text))]

    async def prepare(self) -> None:
        """Startup housekeeping before serving requests."""
        if self.settings.approval.sweep_stale_on_start:
            await asyncio.to_thread(self.mailbox.sweep_stale, self.settings.approval.timeout_seconds)

    async def run_stdio(self) -> None:
        """Run server using stdio transport"""
        await self.prepare()
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=self.settings.version,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )

        logger.info("MCP server stopped")


async def start_mcp_server(settings: Settings | None = None) -> None:
    """
    Start the MCP server in stdio mode.

    Args:
        settings: Application settings
    """
    server = DiffGateMCPServer(settings=settings)
    logger.info("Starting MCP server...")
    await server.run_stdio()

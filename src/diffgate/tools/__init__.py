"""Tool Registry - the file tools exposed to the agent."""

import logging
from typing import Any

from diffgate.approval.handshake import ApprovalHandshake
from diffgate.core.interfaces.tool import BaseTool
from diffgate.tools.file_tools import (
    EditFileTool,
    GetDiffTool,
    ReadFileTool,
    RespondToDiffTool,
    WriteFileTool,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of tool instances, keyed by tool name."""

    def __init__(self) -> None:
        self.tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        name = tool.metadata.name
        if name in self.tools:
            logger.warning("Replacing already registered tool: %s", name)
        self.tools[name] = tool
        logger.debug("Registered tool: %s (%s)", name, tool.metadata.category.value)

    def get_tool(self, name: str) -> BaseTool | None:
        return self.tools.get(name)

    def list_tools(self) -> dict[str, BaseTool]:
        return dict(self.tools)

    async def execute(self, name: str, parameters: dict[str, Any] | None) -> dict[str, Any]:
        tool = self.get_tool(name)
        if tool is None:
            return {"success": False, "error": f"Unknown tool: {name}"}
        return await tool.execute(parameters or {})


def create_file_tools(handshake: ApprovalHandshake) -> ToolRegistry:
    """Build the registry of file tools sharing one approval handshake."""
    registry = ToolRegistry()
    for tool in (
        EditFileTool(handshake),
        WriteFileTool(handshake),
        ReadFileTool(),
        GetDiffTool(handshake),
        RespondToDiffTool(handshake),
    ):
        registry.register(tool)
    return registry


__all__ = [
    "create_file_tools",
    "EditFileTool",
    "GetDiffTool",
    "ReadFileTool",
    "RespondToDiffTool",
    "ToolRegistry",
    "WriteFileTool",
]

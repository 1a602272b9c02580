from diffgate.core.interfaces.tool import BaseTool, ToolCategory, ToolMetadata, ToolParameter

__all__ = ["BaseTool", "ToolCategory", "ToolMetadata", "ToolParameter"]

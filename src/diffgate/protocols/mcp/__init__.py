"""
Model Context Protocol (MCP)
============================

Serves the diff-gated file tools to an agent over stdio.
"""

from .mcp_server import DiffGateMCPServer, start_mcp_server

__all__ = [
    'DiffGateMCPServer',
    'start_mcp_server',
]

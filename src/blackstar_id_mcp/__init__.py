"""Blackstar ID amplifier protocol decoder and MCP server."""

__version__ = "0.1.0"

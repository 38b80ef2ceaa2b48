"""MCP server module for Spotify.

This module provides an MCP (Model Context Protocol) server that exposes
the Spotify Web API as tools for Claude and other AI agents.
"""

from spotify_mcp.mcp.server import create_server, main

__all__ = ["create_server", "main"]

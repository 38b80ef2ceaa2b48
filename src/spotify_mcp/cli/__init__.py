"""Command line interface for Spotify MCP."""

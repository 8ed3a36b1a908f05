"""Stdio bridge from editor MCP clients to the Inky protocol endpoint."""

"""MCP tool registration modules for chuk-mcp-globe."""

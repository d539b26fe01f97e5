"""GitHub Kanban MCP Server.

Exposes GitHub issue-tracker operations (list, create, update, delete, comment)
as MCP tools, backed either by the GitHub CLI (`gh`) or by the GitHub REST API.

Run with: uvx python -m github_kanban_mcp
"""

__version__ = "0.3.0"

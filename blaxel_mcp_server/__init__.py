"""MCP tool endpoint for the Blaxel management API.

Provides:
    - Tool registry with read-only gating and schema-checked dispatch
    - Resource tools: integrations, service accounts, sandboxes, workspace
      users, agents, jobs, MCP servers, model APIs
    - Local project tools driving the ``bl`` CLI
    - stdio MCP server entry point (``blaxel-mcp-server``)
"""

__version__ = "0.3.0"

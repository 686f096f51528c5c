"""FastMCP development server exposing operational-error tools.

Tools:
  - lookup_error_codes(codes)                 fetch catalogue entries by code
  - record_incident(code, service, message)   append an incident, return it

The catalogue and incident list are in-memory; set_catalogue() replaces the
catalogue for tests. Serves MCP over SSE at http://localhost:$TOOL_SERVER_PORT/sse
(default port 8765), the endpoint the service's `tool_server` section points at
during local runs.

Usage:
    uv run python -m backend.tool_server
"""

import os

from mcp.server.fastmcp import FastMCP

Catalogue = dict[str, dict]

DEFAULT_CATALOGUE: Catalogue = {
    "E1001": {"code": "E1001", "severity": "error", "summary": "Upstream connection refused."},
    "E2002": {"code": "E2002", "severity": "warning", "summary": "Queue consumer lagging behind."},
    "E3003": {"code": "E3003", "severity": "critical", "summary": "Disk quota exceeded on node."},
}

mcp = FastMCP("chat-bridge-tools", port=int(os.getenv("TOOL_SERVER_PORT", "8765")))

_catalogue: Catalogue = dict(DEFAULT_CATALOGUE)
_incidents: list[dict] = []


def set_catalogue(catalogue: Catalogue) -> None:
    """Replace the active catalogue and clear recorded incidents (used in tests)."""
    global _catalogue
    _catalogue = catalogue
    _incidents.clear()


def get_incidents() -> list[dict]:
    """Return recorded incidents (used in tests to inspect stored state)."""
    return _incidents


@mcp.tool()
def lookup_error_codes(codes: list[str]) -> list[dict]:
    """Look up operational error codes and return the matching catalogue entries."""
    return [_catalogue[c] for c in codes if c in _catalogue]


@mcp.tool()
def record_incident(code: str, service: str, message: str) -> dict:
    """Record an incident for a service. Returns the stored incident."""
    if code not in _catalogue:
        raise ValueError(f"Unknown error code {code}")
    incident = {"id": len(_incidents) + 1, "code": code, "service": service, "message": message}
    _incidents.append(incident)
    return incident


if __name__ == "__main__":
    mcp.run(transport="sse")

"""
Action-to-MCP bridge.

This package turns the actions discovered on a service broker into an MCP tool
catalogue. Each tool has a protocol-legal name and a validated input schema, and its
dispatch closure forwards calls back to the broker.
"""

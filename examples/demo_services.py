"""
Demo services for the MCP bridge.

Registers a small in-memory "users" and "posts" service so the bridge has
something to expose.

Usage:
    mcp-bridge start config.yaml --services examples/demo_services.py
    mcp-bridge list-actions --services examples/demo_services.py
"""

import asyncio
from typing import Any, Dict, List

USERS: List[Dict[str, Any]] = [
    {"id": "1", "name": "Ada Lovelace", "email": "ada@example.com"},
    {"id": "2", "name": "Alan Turing", "email": "alan@example.com"},
    {"id": "3", "name": "Grace Hopper", "email": "grace@example.com"},
]

POSTS: List[Dict[str, Any]] = []


async def list_users(params: Dict[str, Any]) -> List[Dict[str, Any]]:
    offset = params.get("offset") or 0
    limit = params.get("limit") or len(USERS)
    await asyncio.sleep(0)
    return USERS[offset : offset + limit]


def get_user_by_id(params: Dict[str, Any]) -> Dict[str, Any]:
    for user in USERS:
        if user["id"] == params["id"]:
            return user
    raise LookupError(f"User {params['id']} not found")


def create_post(params: Dict[str, Any]) -> Dict[str, Any]:
    post = {"id": str(len(POSTS) + 1), **params}
    POSTS.append(post)
    return post


def register(broker) -> None:
    """Register the demo services on the broker."""
    broker.create_service(
        "users",
        {
            "list": {
                "params": {
                    "offset": {"type": "number", "optional": True},
                    "limit": {"type": "number", "optional": True},
                },
                "handler": list_users,
            },
            "getById": {"params": {"id": "string"}, "handler": get_user_by_id},
        },
    )
    broker.create_service(
        "posts",
        {
            "create": {
                "params": {
                    "title": "string",
                    "body": "string",
                    "tags": ["string"],
                    "author": {"props": {"id": "string", "email": "email"}},
                    "$$strict": True,
                },
                "handler": create_post,
            },
        },
    )

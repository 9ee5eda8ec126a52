"""MCP Server for Whisper Garden - lets AI clients read, write and share whispers."""

import json
import logging
import httpx
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from shared.schemas import Category
from mcp_server.client import WhisperClient, WHISPER_ENDPOINT, filter_whispers

logger = logging.getLogger(__name__)

server = Server("whisper-garden")

CATEGORIES = [c.value for c in Category]


def make_client() -> WhisperClient:
    """Client for the configured Whisper Garden endpoint."""
    return WhisperClient(WHISPER_ENDPOINT)


def as_text(payload) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available whisper tools."""
    return [
        Tool(
            name="whisper_list",
            description="List whispers, optionally filtered by category or to unviewed ones",
            inputSchema={
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "enum": CATEGORIES,
                        "description": "Only whispers in this category (optional)"
                    },
                    "unviewed_only": {
                        "type": "boolean",
                        "description": "Skip whispers that were already viewed",
                        "default": False
                    }
                }
            }
        ),
        Tool(
            name="whisper_write",
            description="Write a new anonymous whisper",
            inputSchema={
                "type": "object",
                "properties": {
                    "content": {
                        "type": "string",
                        "description": "What you want to whisper"
                    },
                    "category": {
                        "type": "string",
                        "enum": CATEGORIES,
                        "description": "Whisper category"
                    }
                },
                "required": ["content", "category"]
            }
        ),
        Tool(
            name="whisper_mark_viewed",
            description="Mark a whisper as viewed once you have read it",
            inputSchema={
                "type": "object",
                "properties": {
                    "whisper_id": {
                        "type": "integer",
                        "description": "ID of the whisper"
                    }
                },
                "required": ["whisper_id"]
            }
        ),
        Tool(
            name="whisper_share",
            description="Share a whisper; returns a code that opens it for 7 days",
            inputSchema={
                "type": "object",
                "properties": {
                    "whisper_id": {
                        "type": "integer",
                        "description": "ID of the whisper to share"
                    },
                    "shared_by_user_id": {
                        "type": "integer",
                        "description": "Your user ID"
                    },
                    "shared_to_user_id": {
                        "type": "integer",
                        "description": "Recipient user ID (optional, default is everyone)"
                    }
                },
                "required": ["whisper_id", "shared_by_user_id"]
            }
        ),
        Tool(
            name="whisper_open_shared",
            description="Open a shared whisper by its share code",
            inputSchema={
                "type": "object",
                "properties": {
                    "share_code": {
                        "type": "string",
                        "description": "Share code received from someone"
                    }
                },
                "required": ["share_code"]
            }
        ),
        Tool(
            name="whisper_list_shared",
            description="List whispers that have been shared",
            inputSchema={
                "type": "object",
                "properties": {
                    "user_id": {
                        "type": "integer",
                        "description": "Your user ID (optional)"
                    }
                }
            }
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    async with make_client() as client:
        try:
            if name == "whisper_list":
                whispers = await client.fetch_whispers()
                whispers = filter_whispers(
                    whispers,
                    category=arguments.get("category"),
                    unviewed_only=arguments.get("unviewed_only", False)
                )
                return as_text([w.model_dump(mode="json", by_alias=True) for w in whispers])

            elif name == "whisper_write":
                whisper = await client.add_whisper(arguments["content"], arguments["category"])
                return [TextContent(type="text", text=f"Whisper saved. ID: {whisper.id}")]

            elif name == "whisper_mark_viewed":
                whisper = await client.mark_as_viewed(arguments["whisper_id"])
                return [TextContent(type="text", text=f"Whisper {whisper.id} marked as viewed.")]

            elif name == "whisper_share":
                share = await client.share_whisper(
                    arguments["whisper_id"],
                    arguments["shared_by_user_id"],
                    shared_to_user_id=arguments.get("shared_to_user_id")
                )
                return [TextContent(
                    type="text",
                    text=f"Shared! Code: {share.share_code}\n"
                         f"Valid until: {share.expires_at.isoformat()}"
                )]

            elif name == "whisper_open_shared":
                whisper = await client.fetch_shared_whisper_by_code(arguments["share_code"])
                if whisper is None:
                    return [TextContent(type="text", text="Shared whisper not found or expired.")]
                return as_text(whisper.model_dump(mode="json", by_alias=True))

            elif name == "whisper_list_shared":
                whispers = await client.fetch_shared_whispers(arguments.get("user_id"))
                if not whispers:
                    return [TextContent(type="text", text="No shared whispers yet.")]
                return as_text([w.model_dump(mode="json", by_alias=True) for w in whispers])

            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

        except httpx.HTTPStatusError as e:
            try:
                message = e.response.json().get("error", e.response.text)
            except ValueError:
                message = e.response.text
            return [TextContent(
                type="text",
                text=f"Error: {e.response.status_code} - {message}"
            )]
        except httpx.HTTPError as e:
            logger.warning("Whisper Garden unreachable at %s: %s", WHISPER_ENDPOINT, e)
            return [TextContent(type="text", text=f"Error: could not reach Whisper Garden ({e})")]


async def main():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())

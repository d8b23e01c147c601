#!/usr/bin/env python3
"""
PAI Seed MCP Server

Learning extraction and retrieval over the PAI seed file.

Tools - Extraction:
- seed_extract: Run the extraction pipeline on a session transcript

Tools - Retrieval:
- seed_search: Semantic search over confirmed learnings
- seed_context: Build the session-start context block
- seed_embed: Embed confirmed learnings that lack a current vector

Tools - Proposals:
- seed_proposal: Look up a proposal by id (or id prefix)
"""
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from seed_tools.config import get_retrieval_config
from seed_tools.embeddings import EmbeddingStore, embed_all_missing
from seed_tools.proposals import extraction_hook
from seed_tools.retrieval import search_similar
from seed_tools.seed_store import SeedStore, resolve_id_prefix
from seed_tools.session import SETUP_NEEDED_MESSAGE, assemble_session_context
from seed_tools.transcript import read_transcript

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger("pai-seed")

server = Server("pai-seed")

# Tool definitions
TOOLS = [
    Tool(
        name="seed_extract",
        description="Extract learning proposals from a session transcript (JSONL) and append them to the seed file.",
        inputSchema={
            "type": "object",
            "properties": {
                "transcript_path": {
                    "type": "string",
                    "description": "Path to the session transcript (.jsonl)"
                },
                "session_id": {
                    "type": "string",
                    "description": "Session id recorded as the proposal source"
                },
                "confidence": {
                    "type": "number",
                    "description": "Confidence threshold override (0-1)"
                }
            },
            "required": ["transcript_path"]
        }
    ),
    Tool(
        name="seed_search",
        description="Semantic search over confirmed learnings. Returns learnings ranked by similarity.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search text"
                },
                "top_k": {
                    "type": "integer",
                    "description": "Maximum results (default: 10)"
                },
                "min_score": {
                    "type": "number",
                    "description": "Minimum similarity 0-1 (default: 0.5)"
                }
            },
            "required": ["query"]
        }
    ),
    Tool(
        name="seed_context",
        description="Build the session-start context block: identity, relevant learnings, pending proposals, session state.",
        inputSchema={
            "type": "object",
            "properties": {
                "project": {
                    "type": "string",
                    "description": "Current project name"
                },
                "cwd": {
                    "type": "string",
                    "description": "Current working directory"
                },
                "mode": {
                    "type": "string",
                    "enum": ["full", "complement"],
                    "description": "complement omits identity (default: complement when PAI_DIR is set, else full)"
                }
            }
        }
    ),
    Tool(
        name="seed_embed",
        description="Embed confirmed learnings that have no vector or a stale one.",
        inputSchema={"type": "object", "properties": {}}
    ),
    Tool(
        name="seed_proposal",
        description="Look up a proposal by full id or by the short id prefix shown in the proposal index.",
        inputSchema={
            "type": "object",
            "properties": {
                "id": {
                    "type": "string",
                    "description": "Proposal id or prefix (min 4 chars)"
                }
            },
            "required": ["id"]
        }
    ),
]


@server.list_tools()
async def list_tools() -> list[Tool]:
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    logger.info(f"Tool: {name}, args: {arguments}")

    handlers = {
        "seed_extract": handle_extract,
        "seed_search": handle_search,
        "seed_context": handle_context,
        "seed_embed": lambda args: handle_embed(),
        "seed_proposal": handle_proposal,
    }

    try:
        handler = handlers.get(name)
        if handler:
            result = handler(arguments or {})
        else:
            result = {"success": False, "error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        return [TextContent(type="text", text=json.dumps({"success": False, "error": str(e)}))]


def handle_extract(args: dict) -> dict:
    """Handle seed_extract."""
    transcript_path = args.get("transcript_path", "")
    if not transcript_path or not os.path.isfile(transcript_path):
        return {"success": False, "error": f"Transcript not found: {transcript_path}"}

    raw = read_transcript(transcript_path)
    result = extraction_hook(
        raw,
        session_id=args.get("session_id"),
        confidence=args.get("confidence"),
    )
    result.pop("proposals", None)
    return result


def handle_search(args: dict) -> dict:
    """Handle seed_search."""
    query = args.get("query", "")
    if not query.strip():
        return {"success": False, "error": "query is required"}

    config = get_retrieval_config()
    matches = search_similar(
        query,
        EmbeddingStore(),
        top_k=args.get("top_k", config.get("top_k", 10)),
        min_score=args.get("min_score", config.get("search_min_score", 0.5)),
    )

    by_id = {item.id: item for item in SeedStore().list_confirmed()}
    results = []
    for match in matches:
        item = by_id.get(match["id"])
        if item is None:
            continue
        results.append({
            "id": item.id,
            "type": item.type,
            "content": item.content,
            "score": round(match["score"], 4),
        })

    return {"success": True, "query": query, "count": len(results), "results": results}


def handle_context(args: dict) -> dict:
    """Handle seed_context."""
    store = SeedStore()
    if not store.exists():
        return {"success": True, "needs_setup": True, "context": SETUP_NEEDED_MESSAGE}

    context = {"project": args.get("project"), "cwd": args.get("cwd")}
    result = assemble_session_context(store, context, mode=args.get("mode"))
    return {"success": True, "needs_setup": False, **result.to_dict()}


def handle_embed() -> dict:
    """Handle seed_embed."""
    items = SeedStore().list_confirmed()
    counts = embed_all_missing(items, EmbeddingStore())
    return {"success": True, "total": len(items), **counts}


def handle_proposal(args: dict) -> dict:
    """Handle seed_proposal."""
    prefix = args.get("id", "")
    proposals = SeedStore().list_proposals()
    resolved = resolve_id_prefix(proposals, prefix)
    if not resolved["success"]:
        return resolved

    proposal = next(p for p in proposals if p.get("id") == resolved["id"])
    return {"success": True, "proposal": proposal}


async def main():
    logger.info("Starting PAI Seed MCP Server")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for pip scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()

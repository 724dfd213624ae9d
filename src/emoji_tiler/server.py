"""
MCP server exposing the tiling pipeline as tools.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from . import __version__
from .cli import setup_logging
from .config import FILTER_NAMES, RESIZE_MODES, FilterOp, GridShape, Settings, get_settings
from .errors import TilerError
from .masks import list_mask_files
from .models import RunReport, RunSpec
from .pipeline import default_run_name, run
from .source import normalize_locator, validate_locator

logger = logging.getLogger(__name__)


def error_response(error_code: str, message: str, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": message, "error_code": error_code, "message": message}
    payload.update(extra)
    return payload


def _report_payload(report: RunReport) -> dict[str, Any]:
    return {
        "status": "success" if report.ok else "partial_failure",
        "name": report.name,
        "mode": report.mode,
        "output_dir": str(report.output_dir),
        "source_frames": report.source_frames,
        "total": report.total,
        "written": report.written,
        "failed": report.failed,
        "outputs": [str(r.output_path) for r in report.results if r.success],
        "errors": [
            {"output": str(r.output_path), "error_code": r.error_code, "message": r.error_message}
            for r in report.errors
        ],
    }


def _parse_filters(raw: Any) -> list[FilterOp]:
    """Filters arrive as `[{"name": ..., "value": ...}, ...]` in UI units, in order."""
    filters: list[FilterOp] = []
    for item in raw or []:
        if isinstance(item, str):
            filters.append(FilterOp.from_ui(item))
        else:
            filters.append(FilterOp.from_ui(item.get("name", ""), item.get("value")))
    return filters


def _build_spec(args: dict[str, Any], *, use_masks: bool) -> RunSpec:
    source = validate_locator(normalize_locator(args.get("source") or ""))
    grid = GridShape.parse(str(args.get("grid") or "1")) if not use_masks else GridShape()
    return RunSpec(
        source=source,
        name=args.get("name") or default_run_name(source),
        grid=grid,
        resize_mode=args.get("mode") or "stretch",
        filters=_parse_filters(args.get("filters")),
        use_masks=use_masks,
    )


_FILTERS_SCHEMA = {
    "type": "array",
    "description": "Optional: filters applied in order; values in UI units",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string", "enum": list(FILTER_NAMES)},
            "value": {"description": "brightness/contrast -100..100, opacity 0..100, posterize 1..255, "
                                     "rotate degrees, flip horizontal|vertical|both"},
        },
        "required": ["name"],
    },
}

server = Server("emoji-tiler")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools."""
    return [
        Tool(
            name="tile_image",
            description=(
                "Split an image or animated GIF into a grid of square emoji tiles. "
                "Outputs are written to <out_dir>/<name>/ and the folder is cleared first."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Image path or http(s) url"},
                    "grid": {"type": "string", "description": "Optional: W,H or WxH or N (default 1)"},
                    "mode": {"type": "string", "enum": list(RESIZE_MODES), "description": "Optional: resize mode"},
                    "name": {"type": "string", "description": "Optional: output name"},
                    "filters": _FILTERS_SCHEMA,
                },
                "required": ["source"],
            },
        ),
        Tool(
            name="mask_image",
            description="Cut an image or animated GIF with every mask in the mask directory, one output per mask.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Image path or http(s) url"},
                    "mode": {"type": "string", "enum": list(RESIZE_MODES), "description": "Optional: resize mode"},
                    "name": {"type": "string", "description": "Optional: output name"},
                    "filters": _FILTERS_SCHEMA,
                },
                "required": ["source"],
            },
        ),
        Tool(
            name="status",
            description="Show configured directories, sizes and available masks.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


async def tool_tile_image(settings: Settings, args: dict[str, Any]) -> dict[str, Any]:
    spec = _build_spec(args, use_masks=False)
    settings.ensure_directories()
    return _report_payload(await run(spec, settings))


async def tool_mask_image(settings: Settings, args: dict[str, Any]) -> dict[str, Any]:
    spec = _build_spec(args, use_masks=True)
    settings.ensure_directories()
    return _report_payload(await run(spec, settings))


async def tool_status(settings: Settings) -> dict[str, Any]:
    try:
        masks = [p.name for p in list_mask_files(settings.masks_dir)]
    except TilerError:
        masks = []
    return {
        "version": __version__,
        "out_dir": str(settings.out_dir),
        "data_dir": str(settings.data_dir),
        "masks_dir": str(settings.masks_dir),
        "masks": masks,
        "tile_size": settings.tile_size,
        "mask_size": settings.mask_size,
        "gif_color_scope": settings.gif_color_scope,
    }


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    setup_logging()

    t0 = time.perf_counter()
    logger.info("tool_call start: name=%s keys=%s", name, sorted(arguments.keys()))

    try:
        settings = get_settings()
        if name == "tile_image":
            result = await tool_tile_image(settings, arguments)
        elif name == "mask_image":
            result = await tool_mask_image(settings, arguments)
        elif name == "status":
            result = await tool_status(settings)
        else:
            result = error_response("UNKNOWN_TOOL", f"Unknown tool: {name}")

        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        logger.info("tool_call end: name=%s elapsed_ms=%.1f", name, elapsed_ms)

    except TilerError as e:
        logger.exception("tool_call error (%s): name=%s", type(e).__name__, name)
        result = error_response(e.error_code, str(e))

    except ValidationError as e:
        logger.exception("tool_call error (ValidationError): name=%s", name)
        result = error_response("VALIDATION_ERROR", "Validation error", details=str(e))

    except Exception as e:
        logger.exception("tool_call error: name=%s", name)
        result = error_response("UNEXPECTED_EXCEPTION", str(e))

    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


async def run_server() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """Entry point."""
    setup_logging()
    asyncio.run(run_server())


if __name__ == "__main__":
    main()

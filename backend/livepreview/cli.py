#!/usr/bin/env python3
"""
Live preview CLI - thin entrypoint.

Commands:
- serve: run the preview service (uvicorn)
- probe: print source metadata as JSON (no panel, no scheduling)
- clear-cache: delete cached preview segments

Exit Codes:
- 0: Success
- 1: Probe failed
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from livepreview.config import PreviewConfig
from livepreview.execution.errors import PreviewError
from livepreview.execution.ffmpeg import FFmpegPreviewBackend, clear_segment_cache
from livepreview.execution.orchestrator import RenderOrchestrator

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8086


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from livepreview.main import create_app

    app = create_app(config=PreviewConfig.from_env())
    print(f"Starting Live Preview on {args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def cmd_probe(args: argparse.Namespace) -> int:
    config = PreviewConfig.from_env()
    orchestrator = RenderOrchestrator(FFmpegPreviewBackend(config), config)
    try:
        metadata = asyncio.run(orchestrator.fetch_metadata(args.source))
    except PreviewError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(json.dumps(asdict(metadata), indent=2))
    return 0


def cmd_clear_cache(args: argparse.Namespace) -> int:
    config = PreviewConfig.from_env()
    count = clear_segment_cache(config.cache_dir)
    print(f"Deleted {count} cached segment(s) from {config.cache_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livepreview", description="Live encoding preview service")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the preview HTTP service")
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.set_defaults(func=cmd_serve)

    probe = subparsers.add_parser("probe", help="Print source duration and dimensions")
    probe.add_argument("source", help="Path to source video")
    probe.set_defaults(func=cmd_probe)

    clear_cache = subparsers.add_parser("clear-cache", help="Delete cached preview segments")
    clear_cache.set_defaults(func=cmd_clear_cache)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

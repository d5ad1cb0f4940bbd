# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the main unit so this responsibility stays isolated, testable, and easy to evolve.

Application entry point for the NovelSmith generation API.
Registers the routers, the domain error handler and the CLI launcher.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from novelsmith.api.v1.debug import router as debug_router
from novelsmith.api.v1.generation import router as generation_router
from novelsmith.api.v1.novels import router as novels_router
from novelsmith.services.exceptions import ServiceError


def create_app() -> FastAPI:
    """Create the FastAPI app.

    Uvicorn's reload mode requires an import string; the factory keeps route
    registration identical across reload subprocesses.
    """

    app = FastAPI(title="NovelSmith")

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(generation_router)
    api_v1_router.include_router(novels_router)
    api_v1_router.include_router(debug_router)
    api_v1_router.add_api_route(
        "/health", endpoint=lambda: {"status": "ok"}, methods=["GET"]
    )
    app.include_router(api_v1_router)

    @app.exception_handler(ServiceError)
    async def _service_error_handler(
        _request: Request, exc: ServiceError
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    return app


app = create_app()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="novelsmith",
        description="Run the NovelSmith generation API server",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (development only)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker processes (overrides reload)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for the server (default: info)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the machine config JSON (overrides NOVELSMITH_CONFIG)",
    )
    parser.add_argument(
        "--llm-dump",
        action="store_true",
        help="Append every event log entry to a file",
    )
    parser.add_argument(
        "--llm-dump-path",
        default=None,
        help="Path for the event log dump file",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint.

    Examples:
      novelsmith --port 8000 --llm-dump
      python -m novelsmith.main --host 0.0.0.0 --reload
    """
    args = build_arg_parser().parse_args(argv)

    if args.config:
        os.environ["NOVELSMITH_CONFIG"] = args.config
    if args.llm_dump:
        os.environ["NOVELSMITH_LLM_DUMP"] = "1"
    if args.llm_dump_path:
        os.environ["NOVELSMITH_LLM_DUMP_PATH"] = args.llm_dump_path

    import uvicorn

    use_import_string = bool(args.reload) or (
        isinstance(args.workers, int) and args.workers > 1
    )
    uvicorn.run(
        "novelsmith.main:create_app" if use_import_string else app,
        host=args.host,
        port=args.port,
        reload=bool(args.reload) if args.workers in (None, 0) else False,
        workers=args.workers,
        log_level=args.log_level,
        factory=use_import_string,
    )


if __name__ == "__main__":
    main()

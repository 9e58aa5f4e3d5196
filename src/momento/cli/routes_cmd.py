"""CLI command listing the API routes.

Shows each HTTP route with its methods and, for cached reads, the cache
namespace that holds its responses.

Usage:
    momento routes
    momento routes --cached-only
"""

from __future__ import annotations

import typer
from fastapi.routing import APIRoute

app = typer.Typer(help="List API routes")


def _cache_namespace(route: APIRoute) -> str | None:
    interceptor = getattr(route.endpoint, "cache_interceptor", None)
    return getattr(interceptor, "namespace", None)


@app.callback(invoke_without_command=True)
def routes(
    cached_only: bool = typer.Option(
        False,
        "--cached-only",
        help="Only list routes served through the response cache",
    ),
) -> None:
    """Print METHOD PATH [namespace] for every HTTP route."""
    from momento.api.app import create_app

    application = create_app()
    for route in application.routes:
        if not isinstance(route, APIRoute):
            continue
        namespace = _cache_namespace(route)
        if cached_only and namespace is None:
            continue
        methods = ",".join(sorted(route.methods or ()))
        suffix = f"  [cache: {namespace}]" if namespace else ""
        typer.echo(f"{methods:<12} {route.path}{suffix}")

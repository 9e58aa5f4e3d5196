"""CLI command for running the API server.

The response cache and the realtime connection registry live in process
memory, so the server runs as exactly one worker. Defaults come from
Settings (MOMENTO_HOST, MOMENTO_PORT, MOMENTO_LOG_LEVEL).

Usage:
    momento serve
    momento serve --port 4000 --reload
"""

from __future__ import annotations

import typer

from momento.config import settings

app = typer.Typer(help="Run the Momento API server")

APP_FACTORY = "momento.api.app:create_app"


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(settings.host, "--host", help="Interface to bind"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Restart on source changes"),
    log_level: str = typer.Option(
        settings.log_level.lower(), "--log-level", "-l", help="uvicorn log level"
    ),
    access_log: bool = typer.Option(True, "--access-log/--no-access-log"),
) -> None:
    """Serve the API and the /ws realtime endpoint."""
    import uvicorn

    typer.echo(f"Momento listening on http://{host}:{port} (database: {settings.database_url})")
    if reload:
        typer.echo("Auto-reload enabled")

    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
        access_log=access_log,
    )

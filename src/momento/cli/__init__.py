"""Momento command line.

    momento serve   - run the API server (single worker)
    momento routes  - list HTTP routes and the cache namespace of cached reads
"""

import typer

from momento.cli.routes_cmd import app as routes_app
from momento.cli.serve import app as serve_app

app = typer.Typer(
    name="momento",
    help="Momento: social network API with cached reads and realtime updates",
    no_args_is_help=True,
)
app.add_typer(serve_app, name="serve")
app.add_typer(routes_app, name="routes")


def main() -> None:
    app()

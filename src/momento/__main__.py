"""Allow `python -m momento`."""

from momento.cli import main

main()

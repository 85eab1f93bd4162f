"""Entry point of the ``appdeck`` command."""

from __future__ import annotations

import click

from appdeck import __version__
from appdeck.cli.commands.run import run


@click.group()
@click.version_option(__version__, prog_name="appdeck")
def main() -> None:
    """AppDeck - deploy and supervise apps as local processes."""


main.add_command(run)


if __name__ == "__main__":  # pragma: no cover
    main()

"""Allow ``python -m qmdsync``."""

from qmdsync.cli.main import cli

if __name__ == "__main__":
    cli()

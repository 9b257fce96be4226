"""Console script entrypoint for the magina CLI."""

from .cli import main as cli_main


def main() -> int:
    """Console entrypoint used by setuptools script hooks."""
    return cli_main()


if __name__ == "__main__":
    raise SystemExit(main())

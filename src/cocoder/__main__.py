"""cocoder CLI entry point."""

from cocoder.cli import app

if __name__ == "__main__":
    app()

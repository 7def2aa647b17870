"""Main entry point for the cryptogram package."""
from cryptogram.cli import cli


def main():
    """Main entry point function."""
    cli()


if __name__ == "__main__":
    main()

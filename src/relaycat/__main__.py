"""Allow running relaycat as a module: python -m relaycat."""

from relaycat.cli import main

if __name__ == "__main__":
    main(prog_name="relaycat")

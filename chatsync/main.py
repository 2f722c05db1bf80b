"""Entry point for the chatsync terminal client."""

import sys

from .config import load_config
from .errors import FirstLaunchException
from .logging_manager import LogManager


def main():
    """Entry point for the TUI application."""
    try:
        config = load_config()
    except FirstLaunchException as e:
        print("\n=== Welcome to chatsync ===")
        print("\nA default configuration file has been created at:")
        print(f"  {e.config_path}")
        print(
            "\nSet display_name and email there so other members can tell who you are."
        )
        print(
            "\nMembers who should read each other's messages must share the same cipher_secret."
        )
        print("\nRun chatsync again after configuring to start the client.\n")
        sys.exit(0)

    log_manager = LogManager()
    log_manager.setup_from_config(config)

    try:
        from .tui import run_textual_tui

        run_textual_tui(config)
    except ImportError:
        print(
            "Error: Textual library not installed. Install with: pip install textual",
            file=sys.stderr,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()

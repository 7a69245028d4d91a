"""Allow running VibeSnap as ``python -m vibesnap``."""

from .cli.main import main

if __name__ == "__main__":
    main()

"""Allow ``python -m tunebox`` (used to spawn the daemon)."""

from tunebox.cli import main

if __name__ == "__main__":
    main()

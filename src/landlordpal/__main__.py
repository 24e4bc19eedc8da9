"""Allow ``python -m landlordpal``."""

from .cli import main

if __name__ == "__main__":
    main()

"""Allow ``python -m card_search``."""

import sys

from card_search.cli import main

if __name__ == "__main__":
    sys.exit(main())

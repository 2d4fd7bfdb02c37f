"""Allow ``python -m src.pager``."""

import sys

from src.pager.cli import main

sys.exit(main())

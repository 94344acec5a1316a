"""``python -m pluginscan``."""
import sys

from pluginscan.presentation.cli import main

sys.exit(main())

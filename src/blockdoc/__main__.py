"""Allow `python -m blockdoc`."""

import sys

from blockdoc.cli import main

sys.exit(main())

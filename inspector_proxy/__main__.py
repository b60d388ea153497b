"""Allow ``python -m inspector_proxy``."""
import sys

from inspector_proxy.cli import main

sys.exit(main())

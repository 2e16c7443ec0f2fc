"""Allow running terrasolver with `python -m terrasolver`.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import sys

from terrasolver.cli import main

sys.exit(main())

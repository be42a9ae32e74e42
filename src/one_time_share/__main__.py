from __future__ import annotations

import sys

from one_time_share.cli.main import main

sys.exit(main())

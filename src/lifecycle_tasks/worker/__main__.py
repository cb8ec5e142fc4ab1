# src/lifecycle_tasks/worker/__main__.py

import sys

from .main import main

sys.exit(main())

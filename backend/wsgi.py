"""
Deployment entry point
Hosts that look for a module-level `application` import it from here
"""

import os

os.environ.setdefault("PYTHONUNBUFFERED", "1")

from main import app  # noqa: E402

application = app

from __future__ import annotations

import os
import tempfile

# Keep log files out of the working tree during test runs.
os.environ.setdefault("REVIEWBOT_LOG_DIR", tempfile.mkdtemp(prefix="reviewbot-logs-"))

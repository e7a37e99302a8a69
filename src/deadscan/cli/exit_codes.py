"""Exit codes for the deadscan CLI.

- 0: Success
- 1: Findings reported and --fail-on-findings given
- 2: Inspection failed or runtime error
- 3: Invalid usage (bad arguments, malformed input, bad config)
- 4: Conflict (inspection already exists or is still running)
- 5: Inspection not found
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_FINDINGS_FOUND = 1
EXIT_INSPECTION_ERROR = 2
EXIT_INVALID_USAGE = 3
EXIT_CONFLICT = 4
EXIT_NOT_FOUND = 5

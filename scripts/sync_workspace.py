"""
Copy app source files into the per-user workspace and show the debug log.

Usage: python scripts/sync_workspace.py [OPTIONS]
"""

import sys

try:
    from inkdoodle_sync.tools.cli.main import app
except ImportError as e:
    print(f"inkdoodle_sync could not be imported: {e}", file=sys.stderr)
    print("Install it with: pip install -e .", file=sys.stderr)
    sys.exit(1)

app(["workspace", "sync", *sys.argv[1:]], prog_name="inkdoodle")

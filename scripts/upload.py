"""
Stage the logged-in creator's projects to temporary.json.

Usage: python scripts/upload.py
"""

import sys

try:
    from inkdoodle_sync.tools.cli.main import app
except ImportError as e:
    print(f"inkdoodle_sync could not be imported: {e}", file=sys.stderr)
    print("Install it with: pip install -e .", file=sys.stderr)
    sys.exit(1)

app(["harness", "upload"], prog_name="inkdoodle")

"""
Load the sample local project folder and iterate its chapters.

Usage: python scripts/load_project.py
"""

import sys

try:
    from inkdoodle_sync.tools.cli.main import app
except ImportError as e:
    print(f"inkdoodle_sync could not be imported: {e}", file=sys.stderr)
    print("Install it with: pip install -e .", file=sys.stderr)
    sys.exit(1)

app(["harness", "load-project"], prog_name="inkdoodle")

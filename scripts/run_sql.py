"""
Execute a .sql file in a single transaction.

Usage: python scripts/run_sql.py FILE [CONNECTION]
"""

import sys

try:
    from inkdoodle_sync.tools.cli.main import app
except ImportError as e:
    print(f"inkdoodle_sync could not be imported: {e}", file=sys.stderr)
    print("Install it with: pip install -e .", file=sys.stderr)
    sys.exit(1)

app(["run-sql", *sys.argv[1:]], prog_name="inkdoodle")

"""
Entry point of `inkdoodle` CLI when run as `python -m inkdoodle_sync.tools.cli`.
"""

from .main import run

run()

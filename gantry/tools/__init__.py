"""Command-line helpers (run with `python -m gantry.tools.<name>`)."""

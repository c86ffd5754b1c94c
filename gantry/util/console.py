from __future__ import annotations

import sys
from typing import Any


def eprint(*args: Any) -> None:
    print(*args, file=sys.stderr)


def die(msg: str, *, prog: str = "gantry", rc: int = 2) -> int:
    """Report a fatal CLI error on stderr and return the exit code."""
    eprint(f"[{prog}] ERROR: {msg}")
    return rc

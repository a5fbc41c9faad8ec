from __future__ import annotations

import sys

PREFIX = "[perf-capture]"


def info(message: str) -> None:
    print(f"{PREFIX} {message}", file=sys.stderr, flush=True)


def warn(message: str) -> None:
    print(f"{PREFIX} Warning: {message}", file=sys.stderr, flush=True)


def error(message: str, *, hint: str | None = None) -> None:
    print(f"{PREFIX} Error: {message}", file=sys.stderr, flush=True)
    if hint:
        print(f"{PREFIX} Hint: {hint}", file=sys.stderr, flush=True)

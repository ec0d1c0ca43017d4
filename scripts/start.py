#!/usr/bin/env python3
"""
Container entrypoint: release phase, then exec gunicorn on app.wsgi:app.

Environment:
  PORT             listen port (default 8080)
  WEB_CONCURRENCY  gunicorn workers (default 2)
  GUNICORN_TIMEOUT worker timeout in seconds (default 60)
  SKIP_RELEASE=1   start gunicorn without migrating (e.g. extra replicas)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _positive_int(name: str, default: int, *, upper: int | None = None) -> int:
    raw = (os.environ.get(name) or "").strip() or str(default)
    if not raw.isdigit() or int(raw) < 1 or (upper is not None and int(raw) > upper):
        bound = f"1-{upper}" if upper else ">= 1"
        print(f"ERROR: Invalid {name} value '{raw}'. Must be integer {bound}.", flush=True)
        sys.exit(1)
    return int(raw)


def gunicorn_argv(port: int, workers: int, timeout: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        # create_app() runs once in the master and disposes the pool in each forked worker.
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _positive_int("PORT", 8080, upper=65535)
    workers = _positive_int("WEB_CONCURRENCY", 2)
    timeout = _positive_int("GUNICORN_TIMEOUT", 60)

    if (os.environ.get("SKIP_RELEASE") or "").strip() != "1":
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    print(f"Starting gunicorn on 0.0.0.0:{port} ({workers} workers); health check at /healthz", flush=True)
    argv = gunicorn_argv(port, workers, timeout)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()

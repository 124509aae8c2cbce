"""
Container health check: the API must answer /health and the NFS-e scheduler
must report running (unless disabled).
"""

from __future__ import annotations

import json
import os
import sys
from urllib.error import URLError
from urllib.request import urlopen


def _get_json(url: str) -> dict | None:
    try:
        with urlopen(url, timeout=2) as response:
            if not 200 <= response.status < 400:
                return None
            return json.loads(response.read().decode("utf-8"))
    except (URLError, TimeoutError, ValueError):
        return None


def main() -> int:
    port = os.getenv("PORT", "8000")
    base_url = f"http://127.0.0.1:{port}"

    if _get_json(f"{base_url}{os.getenv('HEALTHCHECK_PATH', '/health')}") is None:
        return 1

    scheduler_status = _get_json(f"{base_url}/scheduler/status")
    if scheduler_status is None:
        return 1
    if scheduler_status.get("enabled") and not scheduler_status.get("running"):
        print("NFS-e scheduler is enabled but not running", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

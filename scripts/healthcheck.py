"""Container healthcheck for the datasense-mcp HTTP transport.

Probes the `/health` route. Exit code 0 indicates healthy. With
``--require-schema`` the check also fails until the schema cache has
published a snapshot (phase READY), which suits readiness probes; liveness
probes should omit it because the server keeps serving in degraded mode.

Uses stdlib only so it runs in slim images without the package installed.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Final
from urllib.request import Request, urlopen

DEFAULT_URL: Final[str] = "http://127.0.0.1:8000/health"


def probe(url: str, *, require_schema: bool, timeout: float) -> int:
    try:
        req = Request(url, headers={"User-Agent": "datasense-mcp/healthcheck"})  # noqa: S310
        with urlopen(req, timeout=timeout) as resp:  # noqa: S310 - operator-supplied URL
            if resp.status != 200:
                print(f"unexpected status: {resp.status}", file=sys.stderr)
                return 1
            data = json.loads(resp.read().decode("utf-8"))
    except Exception as exc:  # noqa: BLE001
        print(f"healthcheck error: {exc}", file=sys.stderr)
        return 1

    if data.get("status") != "healthy":
        print(f"payload not healthy: {data}", file=sys.stderr)
        return 1
    if require_schema and data.get("schema_phase") != "READY":
        print(f"schema not ready: phase={data.get('schema_phase')}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--url", default=os.getenv("DATASENSE_HEALTH_URL", DEFAULT_URL))
    parser.add_argument("--timeout", type=float, default=4.0)
    parser.add_argument("--require-schema", action="store_true")
    args = parser.parse_args(argv)
    return probe(args.url, require_schema=args.require_schema, timeout=args.timeout)


if __name__ == "__main__":  # pragma: no cover - used by Docker
    raise SystemExit(main())

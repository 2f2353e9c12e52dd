#!/usr/bin/env python3
"""Render the compact lineage of a serial number as a QR label image."""

from __future__ import annotations

import argparse
import json
import sys
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

import qrcode


def _fetch_compact(base_url: str, serial_number: str) -> dict | None:
    req = Request(
        f"{base_url.rstrip('/')}/api/v1/trace/serial/{quote(serial_number, safe='')}/compact",
        method="GET",
        headers={"Accept": "application/json"},
    )
    try:
        with urlopen(req, timeout=30) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"Trace API failed with status {exc.code}: {body[:500]}") from exc
    except URLError as exc:
        raise RuntimeError(f"Trace API unreachable: {exc.reason}") from exc
    except json.JSONDecodeError as exc:
        raise RuntimeError("Trace API returned non-JSON response") from exc


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--serial", required=True)
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--out", default="lineage-qr.png")
    args = parser.parse_args()

    compact = _fetch_compact(args.base_url, args.serial)
    if compact is None:
        print(f"No production record found for serial number {args.serial}", file=sys.stderr)
        sys.exit(1)

    payload = json.dumps(compact, separators=(",", ":"))
    img = qrcode.make(payload)
    img.save(args.out)
    print(f"Wrote QR image for {args.serial} ({len(payload)} bytes) to {args.out}")


if __name__ == "__main__":
    main()

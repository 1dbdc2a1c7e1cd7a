"""
Submit local files for analysis and wait for the result.

Usage:
  python scripts/submit_analysis.py --title "Q4 Sales" --data-type sales q4_sales.csv --base-url http://localhost:8000
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from insightgen.status_poller import POLL_INTERVAL_SECONDS, AnalysisStatusPoller


def _submit(client: httpx.Client, title: str, data_type: str, paths: List[Path], email: Optional[str]) -> dict:
    files = [("files", (p.name, p.read_bytes())) for p in paths]
    headers = {"X-User-Email": email} if email else {}
    resp = client.post(
        "/analyses",
        data={"title": title, "data_type": data_type, "mode": "async"},
        files=files,
        headers=headers,
    )
    if resp.status_code >= 400:
        raise SystemExit(f"Submission failed ({resp.status_code}): {resp.text}")
    return resp.json()


async def _follow(base_url: str, analysis_id: str, interval: float, timeout: float) -> Optional[dict]:
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout) as client:

        async def fetch(aid: str) -> Optional[dict]:
            resp = await client.get(f"/analyses/{aid}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()

        poller = AnalysisStatusPoller(fetch, analysis_id, interval=interval)
        last = None
        async for record in poller.updates():
            last = record
            status = record["status"] if record else "not_found"
            print(f"  status: {status}", file=sys.stderr)
        return last


def main() -> int:
    parser = argparse.ArgumentParser(description="Upload files for AI analysis and print the findings.")
    parser.add_argument("files", nargs="+", help="Files to analyse")
    parser.add_argument("--title", required=True, help="Analysis title")
    parser.add_argument("--data-type", default="mixed", help="sales, customer_feedback, support_chats, product_reviews, mixed or other")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--email", default="", help="Submit as this user (X-User-Email)")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL_SECONDS, help="Seconds between status polls")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout seconds")
    parser.add_argument("--json", action="store_true", help="Print the full record as JSON")
    args = parser.parse_args()

    paths = [Path(f) for f in args.files]
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        parser.error(f"File(s) not found: {', '.join(missing)}")

    with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
        created = _submit(client, args.title, args.data_type, paths, args.email or None)
    print(f"Submitted analysis {created['id']} ({created['redirect_url']})", file=sys.stderr)

    record = asyncio.run(_follow(args.base_url, created["id"], args.interval, args.timeout))
    if record is None:
        print("Analysis disappeared before completing.", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps(record, indent=2))
    elif record["status"] == "completed":
        print(record.get("summary") or "")
        for insight in record.get("key_insights") or []:
            print(f"- [{insight['impact']}] {insight['title']}")
    else:
        print(f"Analysis failed: {record.get('failure_reason') or 'unknown error'}", file=sys.stderr)
    return 0 if record["status"] == "completed" else 1


if __name__ == "__main__":
    raise SystemExit(main())

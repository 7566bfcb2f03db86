"""Command-line client for the notebook agent server."""

from __future__ import annotations

import argparse
import json

import httpx


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ask a notebook agent a question")
    parser.add_argument("query", nargs="?", help="Question about the notebook")
    parser.add_argument("--notebook", "-n", help="Notebook id")
    parser.add_argument("--agent-url", default="http://localhost:7002", help="Agent server base URL")
    parser.add_argument("--timeout", type=float, default=120.0, help="Request timeout seconds")
    parser.add_argument("--follow-up", metavar="TRACE_ID", help="Trace id of the previous question")
    parser.add_argument("--trace", metavar="TRACE_ID", help="Print a stored trace instead of asking")
    parser.add_argument("--verbose", action="store_true", help="Print citations, outcome and trace id")
    return parser


def _print_answer(data: dict) -> None:
    print(data.get("answer", ""))
    for warning in data.get("warnings") or []:
        print(f"warning: {warning}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.trace and not (args.query and args.notebook):
        parser.error("a query and --notebook are required unless --trace is given")

    # Avoid inheriting system proxy settings that can break localhost calls.
    try:
        with httpx.Client(timeout=args.timeout, trust_env=False) as client:
            if args.trace:
                resp = client.get(f"{args.agent_url}/v1/traces/{args.trace}")
            else:
                payload = {"query": args.query, "notebook_id": args.notebook}
                if args.follow_up:
                    payload["prior_trace_id"] = args.follow_up
                resp = client.post(f"{args.agent_url}/v1/ask", json=payload)
    except httpx.ReadTimeout:
        print("Request timed out. The server may still be processing the request.")
        print("Try again with a longer timeout, e.g. --timeout 300")
        return 1
    except httpx.RequestError as exc:
        print(f"Could not reach the agent server: {exc}")
        return 1

    if args.trace:
        if resp.status_code >= 400:
            print(f"Request failed: {resp.status_code}")
            print(resp.text)
            return 1
        print(json.dumps(resp.json(), ensure_ascii=False, indent=2))
        return 0

    if resp.status_code >= 400 and "application/json" not in resp.headers.get("content-type", ""):
        print(f"Request failed: {resp.status_code}")
        print(resp.text)
        return 1

    data = resp.json()
    if "answer" not in data:
        print(f"Request failed: {resp.status_code}")
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return 1
    _print_answer(data)

    if args.verbose:
        print("\n--- outcome ---")
        print(data.get("outcome"))
        print("\n--- trace_id ---")
        print(data.get("trace_id"))
        print("\n--- citations ---")
        print(json.dumps(data.get("citations", []), ensure_ascii=False, indent=2))

    return 0 if data.get("outcome") != "failed" else 2


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""Smoke test for the prompt flow against a running PromptGate instance.

Usage:
  python scripts/smoke_prompt.py --base-url http://127.0.0.1:3000 --ip 8.8.8.8

Generates a random device id unless --id is given, runs one /prompt, then
checks that /check and /info reflect the charged request.

Environment fallbacks:
  PROMPTGATE_BASE_URL, PROMPTGATE_CLIENT_IP, PROMPTGATE_DEVICE_ID
"""
from __future__ import annotations

import argparse
import os
import secrets
import sys
from typing import Any

import httpx


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PromptGate prompt smoke test")
    parser.add_argument("--base-url", default=os.getenv("PROMPTGATE_BASE_URL", "http://127.0.0.1:3000"))
    parser.add_argument("--ip", default=os.getenv("PROMPTGATE_CLIENT_IP", "8.8.8.8"))
    parser.add_argument("--id", default=os.getenv("PROMPTGATE_DEVICE_ID"))
    parser.add_argument("--prompt", default="a lighthouse on a cliff at dusk, oil painting")
    parser.add_argument("--timeout", type=float, default=90.0)
    parser.add_argument("--quiet", action="store_true")
    return parser.parse_args()


def exit_with(message: str, code: int = 1) -> None:
    print(message, file=sys.stderr)
    raise SystemExit(code)


def safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        return response.json()
    except Exception:
        return {}


def main() -> None:
    args = parse_args()
    base_url = args.base_url.rstrip("/")
    device_id = args.id or secrets.token_hex(8)

    client = httpx.Client(base_url=base_url, timeout=10.0)

    try:
        health = client.get("/health")
    except Exception as exc:
        exit_with(f"Health check failed: {exc}")

    if health.status_code != 200:
        exit_with(f"Health check failed: HTTP {health.status_code} {health.text}")

    response = client.get(
        "/prompt",
        params={"prompt": args.prompt, "ip": args.ip, "id": device_id},
        timeout=args.timeout,
    )
    if response.status_code != 200:
        exit_with(f"Prompt failed: HTTP {response.status_code} {response.text}")

    url = safe_json(response).get("url")
    if not url:
        exit_with("Prompt response missing url")

    image = client.get(url, timeout=args.timeout)
    if image.status_code != 200 or not image.content:
        exit_with(f"Image URL not reachable: HTTP {image.status_code}")

    check = client.get(f"/check/{device_id}")
    if check.status_code != 200:
        exit_with(f"Check failed: HTTP {check.status_code} {check.text}")

    info = safe_json(client.get(f"/info/{device_id}"))
    if info.get("requestsMade") != 1:
        exit_with(f"Expected requestsMade=1, got {info.get('requestsMade')}")

    if not args.quiet:
        print("Smoke test passed")
        print(f"device_id={device_id} tier={safe_json(check).get('msg')}")
        print(f"url={url} bytes={len(image.content)}")


if __name__ == "__main__":
    main()

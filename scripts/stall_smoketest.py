from __future__ import annotations

import json
import os
import sys

import requests

# Run against a live deployment:
#   STALL_API_URL=https://... STALL_API_TOKEN=<access token> python scripts/stall_smoketest.py [--delete]


def main() -> int:
    base = (os.getenv("STALL_API_URL") or "http://localhost:8000").rstrip("/")
    token = (os.getenv("STALL_API_TOKEN") or "").strip()
    if not token:
        print("STALL_API_TOKEN is not set")
        return 2

    headers = {"Authorization": f"Bearer {token}"}
    url = f"{base}/api/stalls"

    def show(name: str, r: requests.Response) -> None:
        print("=" * 80)
        print(name, "status:", r.status_code)
        try:
            print(json.dumps(r.json(), indent=2)[:4000])
        except ValueError:
            print(r.text[:4000])

    try:
        show("GET (before)", requests.get(url, headers=headers, timeout=20))
        show(
            "PUT",
            requests.put(
                url,
                headers=headers,
                json={
                    "name": "Smoke Test Stall",
                    "category": "food",
                    "description": "Created by scripts/stall_smoketest.py",
                    "bannerImage": "https://example.com/banner.png",
                    "ownerName": "Smoke Test",
                    "ownerPhone": "000",
                },
                timeout=20,
            ),
        )
        show("GET (after)", requests.get(url, headers=headers, timeout=20))
        if "--delete" in sys.argv[1:]:
            show("DELETE", requests.delete(url, headers=headers, timeout=20))
    except requests.exceptions.RequestException as e:
        print(f"request failed: {e.__class__.__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

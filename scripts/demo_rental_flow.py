"""Demo: guest rents and watches, then signs in and keeps everything.

Runs in-process against the in-memory stores with FastAPI TestClient.

Run with:
    python scripts/demo_rental_flow.py
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from app.api.dependencies import catalog
from app.client.session_store import InMemorySessionStore
from app.client.tracker import SessionTracker
from app.main import app
from app.models.session import ProgressSnapshot, new_viewer_id
from app.services import token_service

MOVIE_ID = uuid.uuid4()
MOVIE_RUNTIME = 5400


def main() -> None:
    client = TestClient(app)
    catalog.add_asset(MOVIE_ID, MOVIE_RUNTIME)

    # ── Step 1: guest identity ──────────────────────────────────────
    r = client.post("/v1/anonymous-id")
    guest_token = r.json()["anonymous_id"]
    guest = {"X-Anonymous-Id": guest_token}
    print(f"1. POST /v1/anonymous-id           → {r.status_code}  id={r.json()['id']}")

    # ── Step 2: rent as guest ───────────────────────────────────────
    r = client.post(
        f"/v1/rentals/{MOVIE_ID}",
        json={"transaction_id": f"demo-{uuid.uuid4().hex[:8]}", "amount": 499, "payment_method": "card"},
        headers=guest,
    )
    print(f"2. POST /v1/rentals/{{asset}}        → {r.status_code}  expires_at={r.json()['expires_at']}")

    r = client.post(
        f"/v1/rentals/{MOVIE_ID}",
        json={"transaction_id": f"demo-{uuid.uuid4().hex[:8]}", "amount": 499, "payment_method": "card"},
        headers=guest,
    )
    print(f"3. POST /v1/rentals/{{asset}} again  → {r.status_code}  (already rented)")

    # ── Step 3: watch with the tracker, flushing over HTTP ──────────
    def flush(snapshot: ProgressSnapshot) -> None:
        client.put(
            f"/v1/watch-progress/{snapshot.asset_id}",
            json={
                "progress_seconds": snapshot.progress_seconds,
                "duration_seconds": snapshot.duration_seconds,
                "completed": snapshot.completed,
            },
            headers=guest,
        )

    now = [1_700_000_000.0]
    tracker = SessionTracker(
        InMemorySessionStore(),
        viewer_id=new_viewer_id(),
        asset_id=MOVIE_ID,
        asset_title="Demo Feature",
        duration=MOVIE_RUNTIME,
        flush=flush,
        clock=lambda: now[0],
    )
    tracker.track_play(0)
    for second in range(1, 61):
        now[0] += 1
        tracker.track_time_update(second)
    tracker.track_time_update(1200)  # seek, not watch time
    now[0] += 3
    tracker.track_pause(1200)
    print(
        f"4. tracker                          → watched={tracker.session.total_watch_time:.0f}s"
        f"  position={tracker.session.position:.0f}s"
    )

    r = client.get(f"/v1/watch-progress/{MOVIE_ID}", headers=guest)
    print(f"5. GET  /v1/watch-progress/{{asset}} → {r.status_code}  progress={r.json()['progress']['progress_seconds']}")

    # ── Step 4: sign in and migrate ─────────────────────────────────
    user = {"Authorization": f"Bearer {token_service.create_access_token(sub=uuid.uuid4())}"}
    r = client.post("/v1/migrate", json={"anonymous_token": guest_token}, headers=user)
    print(f"6. POST /v1/migrate                 → {r.status_code}  {r.json()}")

    r = client.get(f"/v1/rentals/access/{MOVIE_ID}", headers=user)
    print(f"7. GET  /v1/rentals/access/{{asset}} → {r.status_code}  has_access={r.json()['has_access']}")

    r = client.get("/v1/watch-progress/continue", headers=user)
    print(f"8. GET  /v1/watch-progress/continue → {r.status_code}  total={r.json()['total']}")


if __name__ == "__main__":
    main()

from __future__ import annotations

from datetime import datetime, timedelta, timezone

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seed(test_client, task_id="parts", minutes=15):
    resp = test_client.post(
        "/api/tasks",
        json={
            "task_id": task_id,
            "created_by": "alice",
            "ranges": [{"time_from": T0.isoformat(), "time_to": (T0 + timedelta(minutes=minutes)).isoformat()}],
        },
    )
    assert resp.status_code == 201


def _parse(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def test_claim_hands_out_partitions_in_order_then_204(client):
    test_client, _ = client
    _seed(test_client)

    starts = []
    for _ in range(3):
        resp = test_client.post("/api/tasks/parts/partitions/claim")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "IN_PROGRESS"
        assert body["range_id"]
        assert body["request_id"]
        starts.append(_parse(body["time_from"]))
    assert starts == [T0, T0 + timedelta(minutes=5), T0 + timedelta(minutes=10)]

    resp = test_client.post("/api/tasks/parts/partitions/claim")
    assert resp.status_code == 204
    assert resp.content == b""


def test_claim_unknown_task_is_404(client):
    test_client, _ = client
    assert test_client.post("/api/tasks/missing/partitions/claim").status_code == 404


def test_list_partitions_pages_in_time_order(client):
    test_client, _ = client
    _seed(test_client, minutes=30)
    test_client.post("/api/tasks/parts/partitions/claim")

    page = test_client.get("/api/tasks/parts/partitions", params={"skip": 1, "take": 2}).json()
    assert [_parse(item["time_from"]) for item in page] == [T0 + timedelta(minutes=5), T0 + timedelta(minutes=10)]

    everything = test_client.get("/api/tasks/parts/partitions").json()
    assert len(everything) == 6
    assert everything[0]["status"] == "IN_PROGRESS"
    assert {item["status"] for item in everything[1:]} == {"TODO"}
    assert test_client.get("/api/tasks/missing/partitions").status_code == 404


def test_clear_partitions_keeps_ranges(client):
    test_client, _ = client
    _seed(test_client)
    assert test_client.delete("/api/tasks/parts/partitions").status_code == 204
    assert test_client.get("/api/tasks/parts/partitions").json() == []
    assert len(test_client.get("/api/tasks/parts/ranges").json()) == 1
    assert test_client.post("/api/tasks/parts/partitions/claim").status_code == 204

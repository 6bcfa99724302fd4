def _cow(client, number):
    resp = client.post("/cows", json={"cow_number": number})
    assert resp.status_code == 200
    return resp.json()["id"]


def _cycle(client, cow_id, ai_date, **extra):
    return client.post("/cycles", json={"cow_id": cow_id, "ai_date": ai_date, **extra})


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_duplicate_cow_number_conflicts(client):
    _cow(client, "7")
    assert client.post("/cows", json={"cow_number": "7"}).status_code == 409


def test_guarded_cycle_creation(client):
    cow_id = _cow(client, "11")

    first = _cycle(client, cow_id, "2024-01-01")
    assert first.status_code == 200
    assert first.json()["service_number"] == 1

    check = client.get(f"/cows/{cow_id}/can-start-cycle").json()
    assert check["allowed"] is False
    assert check["blocking_record"]["id"] == first.json()["id"]

    blocked = _cycle(client, cow_id, "2024-02-01")
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "cycle_unresolved"

    pd = client.post(f"/cycles/{first.json()['id']}/pd", json={"pd_result": "negative", "pd_date": "2024-03-01"})
    assert pd.status_code == 200

    second = _cycle(client, cow_id, "2024-03-10")
    assert second.status_code == 200
    assert second.json()["service_number"] == 2


def test_delivery_without_positive_pd_rejected(client):
    cow_id = _cow(client, "12")
    cycle_id = _cycle(client, cow_id, "2024-01-01").json()["id"]
    resp = client.post(f"/cycles/{cycle_id}/delivery", json={"actual_delivery_date": "2024-10-10"})
    assert resp.status_code == 409


def test_summaries_are_bucketed_and_ordered(client):
    overdue = _cow(client, "20")
    due_soon = _cow(client, "21")
    _cow(client, "22")  # no cycles, not listed

    _cycle(client, overdue, "2024-01-01")
    cycle_id = _cycle(client, due_soon, "2023-06-23", expected_delivery_date="2024-04-01").json()["id"]
    client.post(f"/cycles/{cycle_id}/pd", json={"pd_result": "positive", "pd_date": "2023-08-20"})

    rows = client.get("/summaries", params={"today": "2024-03-28"}).json()
    assert [(r["cow_number"], r["bucket"]) for r in rows] == [
        ("21", "about_to_deliver"),
        ("20", "pd_overdue"),
    ]
    assert rows[0]["day_count"] == 4
    assert "Due in 4 days" in rows[0]["badges"]

    only_pd = client.get("/summaries", params={"today": "2024-03-28", "view": "pd_due"}).json()
    assert [r["cow_number"] for r in only_pd] == ["20"]


def test_milking_transitions(client):
    cow_id = _cow(client, "30")
    assert client.post(f"/cows/{cow_id}/undo-flag").status_code == 409
    assert client.post(f"/cows/{cow_id}/flag-move").json()["milking_state"] == "flagged_for_move"
    assert client.post(f"/cows/{cow_id}/undo-flag").json()["milking_state"] == "normal"
    client.post(f"/cows/{cow_id}/flag-move")
    moved = client.post(f"/cows/{cow_id}/mark-moved").json()
    assert moved["milking_state"] == "moved_to_milking"
    assert moved["needs_milking_move"] is False
    assert client.post(f"/cows/{cow_id}/flag-move").status_code == 409
    assert client.post("/cows/999/flag-move").status_code == 404


def test_alerts_and_settings(client):
    cow_id = _cow(client, "40")
    _cycle(client, cow_id, "2024-01-20")

    assert client.get("/alerts", params={"today": "2024-03-05"}).json()["alerts_found"] == 0

    settings = client.put("/settings/alerts", json={"pd_alert_days": 45}).json()
    assert settings["pd_alert_days"] == 45
    assert settings["delivery_expected_days"] == 283

    body = client.get("/alerts", params={"today": "2024-03-05"}).json()
    assert body["alerts"][0]["type"] == "pd_check_due"
    assert body["alerts"][0]["cow_numbers"] == ["40"]


def test_backdated_cycle_rejected_and_guard_stays_truthful(client):
    cow_id = _cow(client, "50")
    cycle_id = _cycle(client, cow_id, "2024-06-01").json()["id"]
    client.post(f"/cycles/{cycle_id}/pd", json={"pd_result": "negative", "pd_date": "2024-08-01"})

    assert _cycle(client, cow_id, "2024-01-01").status_code == 422
    assert client.get(f"/cows/{cow_id}/can-start-cycle").json()["allowed"] is True
    assert _cycle(client, cow_id, "2024-09-01").status_code == 200

from conftest import login


def test_root_and_health(client, monkeypatch):
    monkeypatch.delenv("WEATHER_API_KEY", raising=False)
    assert client.get("/").json()["weather_enabled"] is False
    assert client.get("/health").json() == {"status": "ok"}


# =============================================================================
# CRUD
# =============================================================================

def test_seedling_crud(client, admin_headers, seeded):
    resp = client.post("/admin/seedlings", headers=admin_headers, json={
        "species": "  Neem ", "height_range": "5-10 cm", "count": 7, "zone_id": seeded["zone"]["id"],
    })
    assert resp.status_code == 201
    created = resp.json()
    assert created["species"] == "Neem"

    resp = client.put(f"/admin/seedlings/{created['id']}", headers=admin_headers, json={
        "species": "Neem", "height_range": "10-20 cm", "count": 6,
    })
    assert resp.status_code == 200
    assert resp.json()["count"] == 6
    assert resp.json()["zone_id"] is None

    listed = client.get("/admin/seedlings", headers=admin_headers).json()
    assert [s["species"] for s in listed] == ["Teak", "Rosewood", "Neem"]

    assert client.delete(f"/admin/seedlings/{created['id']}", headers=admin_headers).status_code == 204
    assert client.delete(f"/admin/seedlings/{created['id']}", headers=admin_headers).status_code == 404
    assert client.put(f"/admin/seedlings/{created['id']}", headers=admin_headers, json={
        "species": "Neem", "height_range": "10-20 cm", "count": 1,
    }).status_code == 404


def test_seedling_validation(client, admin_headers):
    bad = [
        {"species": "", "height_range": "5-10 cm", "count": 1},
        {"species": "   ", "height_range": "5-10 cm", "count": 1},
        {"species": "Teak", "height_range": "5-10 cm", "count": -1},
        {"species": "Teak", "height_range": "5-10 cm", "count": "many"},
    ]
    for body in bad:
        assert client.post("/admin/seedlings", headers=admin_headers, json=body).status_code == 422


def test_seedling_unknown_batch_is_404(client, admin_headers):
    resp = client.post("/admin/seedlings", headers=admin_headers, json={
        "species": "Teak", "height_range": "5-10 cm", "count": 1, "batch_id": 999,
    })
    assert resp.status_code == 404


def test_seedling_filters(client, admin_headers, seeded):
    def names(**params):
        resp = client.get("/admin/seedlings", headers=admin_headers, params=params)
        assert resp.status_code == 200
        return [s["species"] for s in resp.json()]

    assert names(q="rose") == ["Rosewood"]
    assert names(q="10-20") == ["Teak"]
    assert names(species=["Teak", "Rosewood"]) == ["Teak", "Rosewood"]
    assert names(height_range="20-30 cm") == ["Rosewood"]
    assert names(zone_id=seeded["zone"]["id"]) == ["Teak"]
    assert names(batch_id=seeded["batch"]["id"], q="teak") == ["Teak"]


def test_batches_newest_first_and_gps_bounds(client, admin_headers):
    for code, day in (("B-1", "2024-01-10"), ("B-2", "2024-04-02")):
        resp = client.post("/admin/batches", headers=admin_headers, json={
            "batch_code": code, "collected_at": day, "gps_latitude": 13.75, "gps_longitude": 100.5,
        })
        assert resp.status_code == 201

    listed = client.get("/admin/batches", headers=admin_headers).json()
    assert [b["batch_code"] for b in listed] == ["B-2", "B-1"]

    resp = client.post("/admin/batches", headers=admin_headers, json={
        "batch_code": "B-3", "collected_at": "2024-05-01", "gps_latitude": 95,
    })
    assert resp.status_code == 422
    assert client.post("/admin/batches", headers=admin_headers, json={"batch_code": "B-4"}).status_code == 422


def test_zones_sorted_by_code(client, admin_headers):
    for code in ("Z3", "Z1", "Z2"):
        client.post("/admin/zones", headers=admin_headers, json={"zone_code": code})
    listed = client.get("/admin/zones", headers=admin_headers).json()
    assert [z["zone_code"] for z in listed] == ["Z1", "Z2", "Z3"]


def test_partner_crud_sorted_by_name(client, admin_headers):
    ids = {}
    for name in ("Village school", "Forest office"):
        ids[name] = client.post("/admin/partners", headers=admin_headers, json={"name": name}).json()["id"]

    listed = client.get("/admin/partners", headers=admin_headers).json()
    assert [p["name"] for p in listed] == ["Forest office", "Village school"]

    resp = client.put(f"/admin/partners/{ids['Forest office']}", headers=admin_headers, json={
        "name": "Forest office", "contact": "02-111-2222",
    })
    assert resp.json()["contact"] == "02-111-2222"
    assert client.delete(f"/admin/partners/{ids['Village school']}", headers=admin_headers).status_code == 204
    assert client.delete("/admin/partners/999", headers=admin_headers).status_code == 404


def test_staff_cannot_delete_partner(client, make_user, seeded):
    headers = login(client, make_user("Staff"))
    assert client.delete(f"/admin/partners/{seeded['partner']['id']}", headers=headers).status_code == 403


def test_logbook_date_range(client, admin_headers):
    for day, activity in (("2024-01-05", "sowing"), ("2024-02-10", "watering"), ("2024-03-15", "transplanting")):
        assert client.post("/admin/logbook", headers=admin_headers, json={"log_date": day, "activity": activity}).status_code == 201

    listed = client.get("/admin/logbook", headers=admin_headers).json()
    assert [l["activity"] for l in listed] == ["transplanting", "watering", "sowing"]

    ranged = client.get("/admin/logbook", headers=admin_headers, params={"date_from": "2024-02-01", "date_to": "2024-03-15"}).json()
    assert [l["activity"] for l in ranged] == ["transplanting", "watering"]

    assert client.get("/admin/logbook", headers=admin_headers, params={"date_from": "2024-04-01", "date_to": "2024-03-01"}).status_code == 400
    assert client.post("/admin/logbook", headers=admin_headers, json={"log_date": "2024-01-05", "activity": ""}).status_code == 422


# =============================================================================
# REQUESTS
# =============================================================================

def _create_request(client, headers, seeded, quantity, seedling="teak"):
    resp = client.post("/admin/requests", headers=headers, json={
        "partner_id": seeded["partner"]["id"],
        "request_date": "2024-05-01",
        "note": "for the school garden",
        "items": [{"seedling_id": seeded[seedling]["id"], "quantity": quantity}],
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def _seedling_count(client, headers, seedling_id):
    listed = client.get("/admin/seedlings", headers=headers).json()
    return next(s["count"] for s in listed if s["id"] == seedling_id)


def test_scenario_a_over_http(client, admin_headers, seeded):
    request = _create_request(client, admin_headers, seeded, 3)
    assert request["status"] == "pending"
    assert request["partner_name"] == "Org A"
    assert request["items"][0]["species"] == "Teak"
    assert _seedling_count(client, admin_headers, seeded["teak"]["id"]) == 5

    resp = client.post(f"/admin/requests/{request['id']}/approve", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert len(resp.json()["fulfilled"]) == 1
    assert _seedling_count(client, admin_headers, seeded["teak"]["id"]) == 2

    assert client.post(f"/admin/requests/{request['id']}/approve", headers=admin_headers).status_code == 400


def test_scenario_b_over_http(client, admin_headers, seeded):
    request = _create_request(client, admin_headers, seeded, 5, seedling="rosewood")

    resp = client.post(f"/admin/requests/{request['id']}/approve", headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "approved"
    assert body["skipped"][0]["available"] == 2
    assert _seedling_count(client, admin_headers, seeded["rosewood"]["id"]) == 2
    assert client.get(f"/admin/requests/{request['id']}", headers=admin_headers).json()["status"] == "approved"


def test_all_or_nothing_policy_over_http(client, admin_headers, seeded, monkeypatch):
    monkeypatch.setenv("NURSERY_APPROVAL_POLICY", "all_or_nothing")
    request = _create_request(client, admin_headers, seeded, 5, seedling="rosewood")

    resp = client.post(f"/admin/requests/{request['id']}/approve", headers=admin_headers)

    assert resp.status_code == 409
    assert client.get(f"/admin/requests/{request['id']}", headers=admin_headers).json()["status"] == "pending"


def test_create_request_validation(client, admin_headers, seeded):
    base = {"partner_id": seeded["partner"]["id"], "request_date": "2024-05-01"}
    item = {"seedling_id": seeded["teak"]["id"], "quantity": 1}

    assert client.post("/admin/requests", headers=admin_headers, json={**base, "items": []}).status_code == 422
    assert client.post("/admin/requests", headers=admin_headers, json={**base, "items": [{**item, "quantity": 0}]}).status_code == 422
    assert client.post("/admin/requests", headers=admin_headers, json={"partner_id": 1, "items": [item]}).status_code == 422
    assert client.post("/admin/requests", headers=admin_headers, json={**base, "partner_id": 999, "items": [item]}).status_code == 404
    assert client.post("/admin/requests", headers=admin_headers, json={**base, "items": [{**item, "seedling_id": 999}]}).status_code == 404


def test_list_and_delete_requests(client, admin_headers, seeded):
    pending = _create_request(client, admin_headers, seeded, 1)
    approved = _create_request(client, admin_headers, seeded, 1)
    client.post(f"/admin/requests/{approved['id']}/approve", headers=admin_headers)

    listed = client.get("/admin/requests", headers=admin_headers).json()
    assert {r["id"] for r in listed} == {pending["id"], approved["id"]}

    assert client.delete(f"/admin/requests/{approved['id']}", headers=admin_headers).status_code == 400
    assert client.delete(f"/admin/requests/{pending['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/admin/requests/{pending['id']}", headers=admin_headers).status_code == 404


def test_staff_can_create_but_not_approve(client, make_user, seeded):
    headers = login(client, make_user("Staff"))
    request = _create_request(client, headers, seeded, 1)
    assert client.post(f"/admin/requests/{request['id']}/approve", headers=headers).status_code == 403


def test_delivery_note(client, admin_headers, seeded):
    request = _create_request(client, admin_headers, seeded, 3)
    assert client.get(f"/admin/requests/{request['id']}/delivery-note", headers=admin_headers).status_code == 400

    client.post(f"/admin/requests/{request['id']}/approve", headers=admin_headers)

    data = client.get(f"/admin/requests/{request['id']}/delivery-note.json", headers=admin_headers).json()
    assert data["partner_name"] == "Org A"
    assert data["lines"] == [{"species": "Teak", "height_range": "10-20 cm", "quantity": 3}]
    assert data["total_quantity"] == 3

    page = client.get(f"/admin/requests/{request['id']}/delivery-note", headers=admin_headers)
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert "window.print()" in page.text
    assert "Teak" in page.text
    assert "for the school garden" in page.text
    assert "Delivered by" in page.text and "Received by" in page.text


# =============================================================================
# STATUS / DASHBOARD
# =============================================================================

def test_project_status(client, admin_headers):
    status = client.get("/admin/status", headers=admin_headers).json()
    assert status["current_stage"] == "seed_collection"
    assert [s["state"] for s in status["timeline"]] == ["doing", "next", "next", "next"]

    resp = client.put("/admin/status", headers=admin_headers, json={"current_stage": "site_preparation"})
    assert resp.status_code == 200
    assert [s["state"] for s in resp.json()["timeline"]] == ["done", "done", "doing", "next"]
    assert resp.json()["label"] == "Site preparation"

    assert client.put("/admin/status", headers=admin_headers, json={"current_stage": "harvest"}).status_code == 422


def test_missing_status_row_is_an_init_error(client, admin_headers, store):
    store.delete("project_status", filters={"id": 1})

    resp = client.get("/admin/status", headers=admin_headers)
    assert resp.status_code == 503
    assert "not initialised" in resp.json()["detail"]
    assert client.put("/admin/status", headers=admin_headers, json={"current_stage": "planting_day"}).status_code == 503
    # reads never create the row
    assert store.select("project_status") == []


def test_unknown_stored_stage_is_an_init_error(client, admin_headers, store):
    store.update("project_status", {"current_stage": "harvest"}, filters={"id": 1})

    resp = client.get("/admin/status", headers=admin_headers)
    assert resp.status_code == 503
    assert "unknown stage 'harvest'" in resp.json()["detail"]

    # setting a valid stage repairs the row
    resp = client.put("/admin/status", headers=admin_headers, json={"current_stage": "planting_day"})
    assert resp.status_code == 200
    assert resp.json()["current_stage"] == "planting_day"


def test_viewer_cannot_change_stage(client, make_user):
    headers = login(client, make_user("Viewer"))
    assert client.get("/admin/status", headers=headers).status_code == 200
    assert client.put("/admin/status", headers=headers, json={"current_stage": "planting_day"}).status_code == 403


def test_dashboard(client, admin_headers, seeded):
    data = client.get("/admin/dashboard", headers=admin_headers).json()
    assert data["total"] == 7
    assert data["species_stats"] == [{"label": "Teak", "count": 5}, {"label": "Rosewood", "count": 2}]
    assert data["growth_trend"] == [{"collected_at": "2024-03-05", "count": 7}]
    assert data["seasonal_trend"] == [{"year": 2024, "month": 3, "count": 7}]
    assert data["survival_rate"] == round(4 / 7 * 100, 2)


def test_public_summary_needs_no_login(client, seeded):
    data = client.get("/public/summary").json()
    assert data["total"] == 7
    assert data["current_stage"] == "seed_collection"
    assert len(data["timeline"]) == 4

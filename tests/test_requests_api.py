import asyncio

from tests.factories import submission


async def _create(async_client, **overrides) -> str:
    response = await async_client.post("/api/requests", json=submission(**overrides))
    assert response.status_code == 200, response.text
    return response.json()["id"]


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def test_create_request(async_client):
    response = await async_client.post("/api/requests", json=submission(startPeriod="PM", endPeriod="AM"))

    assert response.status_code == 200
    body = response.json()
    assert body["id"]
    assert body["days"] == 4.0
    assert body["status"] == "pending"


async def test_create_accepts_snake_case_and_applicant_name(async_client, admin_headers):
    payload = submission()
    payload["applicantName"] = payload.pop("fullName")
    payload["manager_email"] = payload.pop("managerEmail")

    response = await async_client.post("/api/requests", json=payload)
    assert response.status_code == 200

    items = (await async_client.get("/api/requests", headers=admin_headers)).json()["items"]
    assert items[0]["full_name"] == "Camille Martin"
    assert items[0]["manager_email"] == "manager@socgen.fr"


async def test_create_rejects_invalid_manager_email(async_client, admin_headers):
    response = await async_client.post("/api/requests", json=submission(managerEmail="jean.dupont"))

    assert response.status_code == 400
    assert response.json() == {"error": "E-mail du N+1 invalide", "field": "manager_email"}

    listed = await async_client.get("/api/requests", headers=admin_headers)
    assert listed.json()["items"] == []


async def test_create_accepts_numeric_values(async_client, admin_headers):
    response = await async_client.post("/api/requests", json=submission(place=75))

    assert response.status_code == 200
    items = (await async_client.get("/api/requests", headers=admin_headers)).json()["items"]
    assert items[0]["place"] == "75"


async def test_create_wrong_typed_values_are_400(async_client):
    numeric_date = await async_client.post("/api/requests", json=submission(dateFrom=20240301))
    assert numeric_date.status_code == 400
    assert numeric_date.json()["field"] == "date_from"

    list_email = await async_client.post("/api/requests", json=submission(managerEmail=["manager@socgen.fr"]))
    assert list_email.status_code == 400
    assert list_email.json()["field"] == "manager_email"

    object_place = await async_client.post("/api/requests", json=submission(place={"city": "Paris"}))
    assert object_place.status_code == 400
    assert object_place.json()["field"] == "place"


async def test_create_rejects_missing_fields(async_client):
    response = await async_client.post("/api/requests", json={})

    assert response.status_code == 400
    assert response.json()["field"] == "full_name"


async def test_invalid_submission_is_not_stored(async_client, admin_headers):
    await async_client.post("/api/requests", json=submission(dateFrom="2024-03-05", dateTo="2024-03-01"))

    response = await async_client.get("/api/requests", headers=admin_headers)
    assert response.json()["items"] == []


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def test_list_requires_admin(async_client):
    response = await async_client.get("/api/requests")
    assert response.status_code == 401
    assert "error" in response.json()


async def test_list_rejects_bad_token(async_client):
    response = await async_client.get("/api/requests", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test_list_newest_first_with_filters(async_client, admin_headers):
    first = await _create(async_client, entity="CSEC SG")
    second = await _create(async_client, entity="CSE BDDF", type="21C")
    third = await _create(async_client, entity="CSEC SG")
    await async_client.post(f"/api/requests/{third}/validate", headers=admin_headers)

    items = (await async_client.get("/api/requests", headers=admin_headers)).json()["items"]
    assert [item["id"] for item in items] == [third, second, first]

    pending = (await async_client.get("/api/requests?status=pending", headers=admin_headers)).json()["items"]
    assert {item["id"] for item in pending} == {first, second}

    by_entity = (await async_client.get("/api/requests?entity=CSEC SG", headers=admin_headers)).json()["items"]
    assert {item["id"] for item in by_entity} == {first, third}

    by_type = (await async_client.get("/api/requests?type=21C", headers=admin_headers)).json()["items"]
    assert [item["id"] for item in by_type] == [second]

    lower_type = (await async_client.get("/api/requests?type=21c", headers=admin_headers)).json()["items"]
    assert [item["id"] for item in lower_type] == [second]


async def test_list_rejects_unknown_status(async_client, admin_headers):
    response = await async_client.get("/api/requests?status=archived", headers=admin_headers)
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def test_validate_twice(async_client, admin_headers, sink):
    request_id = await _create(async_client)

    first = await async_client.post(f"/api/requests/{request_id}/validate", headers=admin_headers)
    second = await async_client.post(f"/api/requests/{request_id}/validate", headers=admin_headers)

    assert first.json() == {"ok": True, "already": False}
    assert second.json() == {"ok": True, "already": True}
    assert len(sink.directives) == 1
    assert sink.directives[0].to == ["manager@socgen.fr", "rh@socgen.fr"]
    assert sink.directives[0].cc == [
        "secretariat@csec-sg.fr", "rh-groupe@csec-sg.fr", "camille.martin@socgen.fr"
    ]

    items = (await async_client.get("/api/requests", headers=admin_headers)).json()["items"]
    assert items[0]["status"] == "sent"
    assert items[0]["validated_at"] is not None
    assert items[0]["decided_by"] == "sebastien.delgado@csec-sg.fr"


async def test_validate_requires_admin(async_client, sink):
    request_id = await _create(async_client)
    response = await async_client.post(f"/api/requests/{request_id}/validate")
    assert response.status_code == 401
    assert sink.directives == []


async def test_refuse_requires_reason(async_client, admin_headers, sink):
    request_id = await _create(async_client)

    without_body = await async_client.post(f"/api/requests/{request_id}/refuse", headers=admin_headers)
    blank = await async_client.post(
        f"/api/requests/{request_id}/refuse", headers=admin_headers, json={"reason": "  "}
    )

    for response in (without_body, blank):
        assert response.status_code == 400
        assert response.json()["field"] == "reason"
    assert sink.directives == []


async def test_refuse(async_client, admin_headers, sink):
    request_id = await _create(async_client)

    response = await async_client.post(
        f"/api/requests/{request_id}/refuse", headers=admin_headers, json={"reason": "Période de clôture"}
    )

    assert response.json() == {"ok": True}
    assert sink.directives[0].kind == "refused"
    assert sink.directives[0].to == ["camille.martin@socgen.fr"]

    refused = (await async_client.get("/api/requests?status=refused", headers=admin_headers)).json()["items"]
    assert refused[0]["decision_reason"] == "Période de clôture"
    assert refused[0]["decision_at"] is not None


async def test_cancel_then_other_actions_conflict(async_client, admin_headers, sink):
    request_id = await _create(async_client)

    response = await async_client.post(
        f"/api/requests/{request_id}/cancel", headers=admin_headers, json={"reason": "Doublon"}
    )
    assert response.json() == {"ok": True}

    validate = await async_client.post(f"/api/requests/{request_id}/validate", headers=admin_headers)
    refuse = await async_client.post(
        f"/api/requests/{request_id}/refuse", headers=admin_headers, json={"reason": "Motif"}
    )
    cancel = await async_client.post(
        f"/api/requests/{request_id}/cancel", headers=admin_headers, json={"reason": "Motif"}
    )

    for conflict in (validate, refuse, cancel):
        assert conflict.status_code == 409
        assert "error" in conflict.json()
    assert [d.kind for d in sink.directives] == ["cancelled"]


async def test_refuse_after_validation_conflicts(async_client, admin_headers):
    request_id = await _create(async_client)
    await async_client.post(f"/api/requests/{request_id}/validate", headers=admin_headers)

    response = await async_client.post(
        f"/api/requests/{request_id}/refuse", headers=admin_headers, json={"reason": "Trop tard"}
    )
    assert response.status_code == 409


async def test_unknown_request_is_404(async_client, admin_headers):
    response = await async_client.post("/api/requests/does-not-exist/validate", headers=admin_headers)
    assert response.status_code == 404


async def test_concurrent_validations(async_client, admin_headers, sink):
    request_id = await _create(async_client)

    responses = await asyncio.gather(*[
        async_client.post(f"/api/requests/{request_id}/validate", headers=admin_headers)
        for _ in range(3)
    ])

    assert all(response.status_code == 200 for response in responses)
    assert sorted(response.json()["already"] for response in responses) == [False, True, True]
    assert len(sink.directives) == 1


# ---------------------------------------------------------------------------
# Export and health
# ---------------------------------------------------------------------------


async def test_export_csv(async_client, admin_headers):
    await _create(async_client, fullName="Camille; Martin", startPeriod="AM", endPeriod="AM", dateTo="2024-03-01")

    response = await async_client.get("/api/requests/export.csv", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "detachements-export-complet.csv" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0].startswith("Prénom & Nom;E-mail Demandeur;Entité;Dates")
    assert lines[1].startswith('"Camille; Martin";camille.martin@socgen.fr;CSEC SG;01/03/2024 (Matin);')
    assert ";0.5;" in lines[1]


async def test_export_requires_admin(async_client):
    response = await async_client.get("/api/requests/export.csv")
    assert response.status_code == 401


async def test_health(async_client):
    for path in ("/health", "/api/health"):
        response = await async_client.get(path)
        assert response.json() == {"ok": True}


async def test_home_page(async_client):
    response = await async_client.get("/")
    assert response.status_code == 200
    assert "Détachements API" in response.text

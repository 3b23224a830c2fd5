from __future__ import annotations

import io
import re
import uuid

PREFIX = "/api/v1/admission"


def _create_period(client, **overrides):
    body = {"name": "2026/2027", "start_date": "2026-01-01T00:00:00Z", "end_date": "2026-06-30T00:00:00Z", "is_active": True}
    body.update(overrides)
    resp = client.post(f"{PREFIX}/periods", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _submit(client, period_id, **overrides):
    body = {
        "admission_period_id": period_id,
        "first_name": "John",
        "last_name": "Doe",
        "email": "j@x",
        "phone_number": "1",
        "previous_school": "H",
        "average_score": 85.0,
    }
    body.update(overrides)
    return client.post(f"{PREFIX}/applications", json=body)


def test_health_and_metrics(admission_client):
    health = admission_client.get("/api/v1/health")
    assert health.status_code == 200
    assert health.get_json() == {"status": "ok", "service": "admission-service", "database": "unconfigured"}

    metrics = admission_client.get("/metrics")
    assert metrics.status_code == 200
    assert metrics.content_type.startswith("text/plain")
    assert b"http_requests_total" in metrics.data


def test_success_envelope_carries_request_id(admission_client):
    resp = admission_client.get(f"{PREFIX}/periods", headers={"X-Request-ID": "req-123"})

    body = resp.get_json()
    assert body["success"] is True
    assert body["data"] == []
    assert body["meta"]["request_id"] == "req-123"
    assert resp.headers["X-Request-ID"] == "req-123"


def test_admission_happy_path(admission_client, admission):
    period = _create_period(admission_client)
    assert admission_client.get(f"{PREFIX}/periods/active").get_json()["data"]["id"] == period["id"]

    submitted = _submit(admission_client, period["id"])
    assert submitted.status_code == 201
    app = submitted.get_json()["data"]
    assert app["status"] == "submitted"
    assert re.match(r"^REG-\d{8}-\d{4}$", app["registration_number"])

    assert admission_client.post(f"{PREFIX}/applications/{app['id']}/test-score", json={"score": 80}).status_code == 200
    assert admission_client.post(f"{PREFIX}/applications/{app['id']}/interview-score", json={"score": 90}).status_code == 200

    calc = admission_client.post(f"{PREFIX}/periods/{period['id']}/calculate-final-scores")
    assert calc.get_json()["data"]["updated"] == 1
    assert admission_client.get(f"{PREFIX}/applications/{app['id']}").get_json()["data"]["final_score"] == 85.0

    announced = admission_client.post(f"{PREFIX}/periods/{period['id']}/announce", json={"passing_grade": 80})
    assert announced.get_json()["data"]["accepted"] == 1

    registered = admission_client.post(f"{PREFIX}/applications/{app['id']}/register")
    assert registered.status_code == 200
    assert registered.get_json()["data"]["status"] == "registered"
    assert admission.publisher.published[0][2]["registration_number"] == app["registration_number"]

    status = admission_client.get(f"{PREFIX}/applications/status", query_string={"registration_number": app["registration_number"]})
    assert status.get_json()["data"]["status"] == "registered"

    again = admission_client.post(f"{PREFIX}/applications/{app['id']}/register")
    assert again.status_code == 409
    assert again.get_json()["error"]["code"] == "4009"

    repeat = admission_client.post(f"{PREFIX}/periods/{period['id']}/announce", json={"passing_grade": 80})
    assert repeat.status_code == 409


def test_list_applications_filters(admission_client):
    period = _create_period(admission_client)
    _submit(admission_client, period["id"])
    _submit(admission_client, period["id"], first_name="Jane", tenant_id="school-b")

    all_rows = admission_client.get(f"{PREFIX}/applications", query_string={"admission_period_id": period["id"]})
    tenant_rows = admission_client.get(f"{PREFIX}/applications", headers={"X-Tenant-ID": "school-b"})
    verified = admission_client.get(f"{PREFIX}/applications", query_string={"status": "verified"})
    bogus = admission_client.get(f"{PREFIX}/applications", query_string={"status": "enrolled"})

    assert len(all_rows.get_json()["data"]) == 2
    assert [r["first_name"] for r in tenant_rows.get_json()["data"]] == ["Jane"]
    assert verified.get_json()["data"] == []
    assert bogus.status_code == 400


def test_verify_endpoint(admission_client):
    period = _create_period(admission_client)
    app = _submit(admission_client, period["id"]).get_json()["data"]

    ok = admission_client.put(f"{PREFIX}/applications/{app['id']}/verify", json={"status": "verified"})
    bad = admission_client.put(f"{PREFIX}/applications/{app['id']}/verify", json={"status": "registered"})

    assert ok.get_json()["data"]["status"] == "verified"
    assert bad.status_code == 400


def test_error_envelope_for_invalid_input(admission_client):
    resp = _submit(admission_client, "not-a-uuid")

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "4001"
    assert body["error"]["detail"]


def test_malformed_json_is_invalid_input(admission_client):
    resp = admission_client.post(f"{PREFIX}/applications", data="{oops", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "4001"


def test_unknown_resources_are_not_found(admission_client):
    missing = admission_client.get(f"{PREFIX}/applications/{uuid.uuid4()}")
    no_route = admission_client.get(f"{PREFIX}/nowhere")
    no_period = _submit(admission_client, str(uuid.uuid4()))

    assert missing.status_code == 404
    assert missing.get_json()["error"]["code"] == "4004"
    assert no_route.status_code == 404
    assert no_period.status_code == 404


def test_score_out_of_range(admission_client):
    period = _create_period(admission_client)
    app = _submit(admission_client, period["id"]).get_json()["data"]
    resp = admission_client.post(f"{PREFIX}/applications/{app['id']}/test-score", json={"score": 101})
    assert resp.status_code == 400


def test_period_crud(admission_client):
    period = _create_period(admission_client, is_active=False)

    renamed = admission_client.put(
        f"{PREFIX}/periods/{period['id']}",
        json={"name": "Renamed", "start_date": "2026-01-01", "end_date": "2026-01-01"},
    )
    inverted = admission_client.put(
        f"{PREFIX}/periods/{period['id']}",
        json={"name": "Renamed", "start_date": "2026-02-01", "end_date": "2026-01-01"},
    )
    no_active = admission_client.get(f"{PREFIX}/periods/active")
    deleted = admission_client.delete(f"{PREFIX}/periods/{period['id']}")
    gone = admission_client.get(f"{PREFIX}/periods/{period['id']}")

    assert renamed.get_json()["data"]["name"] == "Renamed"
    assert inverted.status_code == 400
    assert no_active.status_code == 404
    assert deleted.status_code == 200
    assert gone.status_code == 404


def test_document_upload_list_and_delete(admission_client):
    period = _create_period(admission_client)
    app = _submit(admission_client, period["id"]).get_json()["data"]
    url = f"{PREFIX}/applications/{app['id']}/documents"

    uploaded = admission_client.post(
        url,
        data={"document_type": "photo", "file": (io.BytesIO(b"\x89PNG data"), "pas-foto.png")},
        content_type="multipart/form-data",
    )
    assert uploaded.status_code == 201, uploaded.get_json()
    doc = uploaded.get_json()["data"]
    assert doc["file_url"].startswith("/uploads/") and doc["file_url"].endswith(".png")
    assert doc["file_size"] == len(b"\x89PNG data")

    assert [d["id"] for d in admission_client.get(url).get_json()["data"]] == [doc["id"]]
    assert admission_client.get(f"{PREFIX}/documents/{doc['id']}").status_code == 200
    assert admission_client.delete(f"{PREFIX}/documents/{doc['id']}").status_code == 200
    assert admission_client.get(url).get_json()["data"] == []


def test_document_upload_requires_file(admission_client):
    period = _create_period(admission_client)
    app = _submit(admission_client, period["id"]).get_json()["data"]
    resp = admission_client.post(
        f"{PREFIX}/applications/{app['id']}/documents",
        data={"document_type": "photo"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_register_rejected_by_event_bus_keeps_application_accepted(admission_client, admission):
    period = _create_period(admission_client)
    app = _submit(admission_client, period["id"]).get_json()["data"]
    admission_client.post(f"{PREFIX}/applications/{app['id']}/test-score", json={"score": 90})
    admission_client.post(f"{PREFIX}/applications/{app['id']}/interview-score", json={"score": 90})
    admission_client.post(f"{PREFIX}/periods/{period['id']}/calculate-final-scores")
    admission_client.post(f"{PREFIX}/periods/{period['id']}/announce", json={"passing_grade": 70})
    admission.publisher.fail = True

    resp = admission_client.post(f"{PREFIX}/applications/{app['id']}/register")

    assert resp.status_code == 500
    assert resp.get_json()["error"]["code"] == "5001"
    assert admission_client.get(f"{PREFIX}/applications/{app['id']}").get_json()["data"]["status"] == "accepted"


def test_delete_period_with_applications_is_conflict(admission_client):
    period = _create_period(admission_client)
    _submit(admission_client, period["id"])

    resp = admission_client.delete(f"{PREFIX}/periods/{period['id']}")

    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "4009"
    assert admission_client.get(f"{PREFIX}/periods/{period['id']}").status_code == 200

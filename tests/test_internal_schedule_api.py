# tests/test_internal_schedule_api.py
from http import HTTPStatus

from app.core.exceptions import ExternalServiceError

TEMPLATE_PAYLOAD = {
    "course_name": "Conversation Club",
    "level": "bbg",
    "teacher_name": "Jane Doe",
    "day_of_week": "monday",
    "time_of_day": "20:30",
    "duration_minutes": 60,
}


def _create_template(client, **overrides) -> int:
    response = client.post("/templates", json={**TEMPLATE_PAYLOAD, **overrides})
    assert response.status_code == HTTPStatus.CREATED
    return response.json()["id"]


def _generate(client, week_start: str = "2024-01-01") -> dict:
    response = client.post(f"/internal/generate-week?week_start={week_start}")
    assert response.status_code == HTTPStatus.OK
    return response.json()


def test_generate_week_materializes_active_templates(client):
    """
    The Monday 20:30 scenario end to end: one pending occurrence on
    2024-01-01 at 20:30, visible through the schedule endpoint.
    """
    template_id = _create_template(client)

    summary = _generate(client)

    assert summary["week_start"] == "2024-01-01"
    assert summary["created"] == 1
    (occurrence,) = summary["occurrences"]
    assert occurrence["template_id"] == template_id
    assert occurrence["scheduled_date"] == "2024-01-01"
    assert occurrence["scheduled_time"] == "20:30:00"
    assert occurrence["status"] == "pending"

    listed = client.get("/schedule/occurrences?start_date=2024-01-01&end_date=2024-01-07")
    assert listed.status_code == HTTPStatus.OK
    assert [o["id"] for o in listed.json()] == [occurrence["id"]]

    detail = client.get(f"/schedule/occurrences/{occurrence['id']}")
    assert detail.status_code == HTTPStatus.OK
    assert detail.json()["course_name"] == "Conversation Club"


def test_generate_week_twice_does_not_duplicate(client):
    _create_template(client)

    first = _generate(client, "2024-01-03")
    second = _generate(client, "2024-01-01")

    assert second["created"] == 0
    assert [o["id"] for o in first["occurrences"]] == [o["id"] for o in second["occurrences"]]


def test_generate_week_defaults_to_current_week(client):
    response = client.post("/internal/generate-week")

    assert response.status_code == HTTPStatus.OK
    assert response.json()["templates_evaluated"] == 0


def test_schedule_rejects_inverted_range(client):
    response = client.get("/schedule/occurrences?start_date=2024-01-07&end_date=2024-01-01")

    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_unknown_occurrence_returns_404(client):
    assert client.get("/schedule/occurrences/999").status_code == HTTPStatus.NOT_FOUND


def test_sync_endpoint_links_meeting(client, fake_meeting_client):
    _create_template(client)
    occurrence_id = _generate(client)["occurrences"][0]["id"]

    response = client.post(f"/internal/occurrences/{occurrence_id}/sync")

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["ok"] is True
    assert body["meeting"]["join_url"] == "https://zoom.us/j/meeting-1"
    assert len(fake_meeting_client.calls) == 1

    detail = client.get(f"/schedule/occurrences/{occurrence_id}").json()
    assert detail["status"] == "scheduled"
    assert detail["meeting_id"] == body["meeting"]["id"]


def test_sync_endpoint_reports_unknown_occurrence_in_body(client):
    response = client.post("/internal/occurrences/999/sync")

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["ok"] is False
    assert body["error_kind"] == "not_found"


def test_bulk_sync_returns_results_in_order(client, fake_meeting_client):
    _create_template(client, course_name="Course A")
    _create_template(client, course_name="Course B", day_of_week="tuesday")
    _create_template(client, course_name="Course C", day_of_week="wednesday")
    ids = [o["id"] for o in _generate(client)["occurrences"]]
    fake_meeting_client.fail_topics["Course B - Jane Doe"] = ExternalServiceError("Zoom unavailable")

    response = client.post("/internal/occurrences/sync-bulk", json={"occurrence_ids": ids})

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["requested"] == 3
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert [r["occurrence_id"] for r in body["results"]] == ids
    assert [r["ok"] for r in body["results"]] == [True, False, True]


def test_bulk_sync_requires_ids(client):
    response = client.post("/internal/occurrences/sync-bulk", json={"occurrence_ids": []})

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_retire_meeting_endpoint(client):
    template_id = _create_template(client)
    occurrence_id = _generate(client)["occurrences"][0]["id"]
    client.post(f"/internal/occurrences/{occurrence_id}/sync")

    response = client.post(f"/internal/templates/{template_id}/retire-meeting")

    assert response.status_code == HTTPStatus.OK
    assert response.json()["is_active"] is False

    again = client.post(f"/internal/templates/{template_id}/retire-meeting")
    assert again.status_code == HTTPStatus.NOT_FOUND


def test_automation_logs_record_generation_and_sync(client):
    template_id = _create_template(client)
    occurrence_id = _generate(client)["occurrences"][0]["id"]
    client.post(f"/internal/occurrences/{occurrence_id}/sync")

    logs = client.get("/automation-logs").json()
    assert [entry["kind"] for entry in logs] == ["meeting_sync", "schedule_generation"]

    sync_logs = client.get(f"/automation-logs?kind=meeting_sync&template_id={template_id}").json()
    (entry,) = sync_logs
    assert entry["outcome"] == "success"
    assert entry["occurrence_id"] == occurrence_id
    assert entry["details"]["external_meeting_id"] == "meeting-1"

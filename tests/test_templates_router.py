"""Integration tests for template expansion over HTTP."""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from application.models import RecurrenceFrequency
from backend.main import create_app
from backend.settings import Settings
from tests.fixtures import build_template


@pytest.fixture
def weekly(app):
    template = build_template(RecurrenceFrequency.weekly)
    app.state.template_repository.add_molecule_template(template)
    return template


class TestExpandTemplate:
    @pytest.mark.unit
    def test_expand_january(self, api_client, app, weekly):
        response = api_client.post(
            f"/api/templates/{weekly.id}/expand",
            json={"start": "2024-01-01", "end": "2024-02-01"},
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["created"]) == 5
        assert body["committed"] is True
        assert len(app.state.molecule_repository.fetch()) == 5

    @pytest.mark.unit
    def test_expand_twice_skips_existing(self, api_client, weekly):
        payload = {"start": "2024-01-01", "end": "2024-02-01"}
        api_client.post(f"/api/templates/{weekly.id}/expand", json=payload)

        body = api_client.post(f"/api/templates/{weekly.id}/expand", json=payload).json()

        assert body["created"] == []
        assert len(body["skipped_dates"]) == 5
        assert body["committed"] is None

    @pytest.mark.unit
    def test_configured_horizon(self):
        settings = Settings(environment="test", schedule_horizon_days=3, _env_file=None)
        app = create_app(settings=settings)
        template = build_template(RecurrenceFrequency.daily)
        app.state.template_repository.add_molecule_template(template)

        with TestClient(app) as client:
            body = client.post(f"/api/templates/{template.id}/expand", json={"start": "2024-01-01"}).json()

        assert [m["scheduled_date"][:10] for m in body["created"]] == ["2024-01-01", "2024-01-02", "2024-01-03"]

    @pytest.mark.unit
    def test_unknown_template_404(self, api_client):
        response = api_client.post(f"/api/templates/{uuid4()}/expand", json={"start": "2024-01-01"})
        assert response.status_code == 404

    @pytest.mark.unit
    def test_inverted_range_400(self, api_client, weekly):
        response = api_client.post(
            f"/api/templates/{weekly.id}/expand",
            json={"start": "2024-02-01", "end": "2024-01-01"},
        )
        assert response.status_code == 400


TEMPLATE_PAYLOAD = {
    "title": "Evening Wind-down",
    "base_time": "21:00:00",
    "recurrence": {
        "frequency": "custom",
        "anchor": "2024-01-01",
        "weekdays": [1, 3, 5],
        "end_rule": {"kind": "afterOccurrences", "count": 4},
    },
    "atom_templates": [
        {"title": "Read", "input_type": "binary", "order": 0},
        {"title": "Pages", "input_type": "counter", "target_value": 10, "order": 1},
    ],
}


class TestCreateTemplate:
    @pytest.mark.unit
    def test_create_then_expand(self, api_client, app):
        created = api_client.post("/api/templates", json=TEMPLATE_PAYLOAD)

        assert created.status_code == 201
        template_id = created.json()["id"]
        assert app.state.template_repository.get_molecule_template(UUID(template_id)) is not None

        body = api_client.post(
            f"/api/templates/{template_id}/expand",
            json={"start": "2024-01-01", "end": "2024-02-01"},
        ).json()

        # Mon/Wed/Fri, stopping after four occurrences
        assert [m["scheduled_date"] for m in body["created"]] == [
            "2024-01-01T21:00:00",
            "2024-01-03T21:00:00",
            "2024-01-05T21:00:00",
            "2024-01-08T21:00:00",
        ]
        assert [a["title"] for a in body["created"][0]["atoms"]] == ["Read", "Pages"]

    @pytest.mark.unit
    def test_get_template(self, api_client):
        template_id = api_client.post("/api/templates", json=TEMPLATE_PAYLOAD).json()["id"]

        response = api_client.get(f"/api/templates/{template_id}")

        assert response.status_code == 200
        assert response.json()["title"] == "Evening Wind-down"
        assert sorted(response.json()["recurrence"]["weekdays"]) == [1, 3, 5]

    @pytest.mark.unit
    def test_posting_same_id_replaces(self, api_client, app):
        template_id = api_client.post("/api/templates", json=TEMPLATE_PAYLOAD).json()["id"]
        replacement = {**TEMPLATE_PAYLOAD, "id": template_id, "title": "Renamed", "atom_templates": []}

        assert api_client.post("/api/templates", json=replacement).status_code == 201

        stored = app.state.template_repository.get_molecule_template(UUID(template_id))
        assert stored.title == "Renamed"
        assert stored.atom_templates == []

    @pytest.mark.unit
    def test_invalid_weekday_422(self, api_client):
        payload = {**TEMPLATE_PAYLOAD, "recurrence": {**TEMPLATE_PAYLOAD["recurrence"], "weekdays": [7]}}
        assert api_client.post("/api/templates", json=payload).status_code == 422

    @pytest.mark.unit
    def test_save_failure_503(self, api_client, app):
        app.state.template_repository.save_molecule_template = lambda template: False
        assert api_client.post("/api/templates", json=TEMPLATE_PAYLOAD).status_code == 503

    @pytest.mark.unit
    def test_get_unknown_404(self, api_client):
        assert api_client.get(f"/api/templates/{uuid4()}").status_code == 404

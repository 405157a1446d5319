"""Tests for Recorder API endpoints."""

import pytest
from fastapi.testclient import TestClient

from src.api.recording_events import reset_sessions
from src.api.server import create_app


def _wire_event(event_id, event_type, timestamp, selector="#btn", **extra):
    data = {"type": "mouse", "button": 0}
    if event_type in ("input", "keydown"):
        data = {"type": "keyboard", "key": "a", "inputValue": extra.pop("input_value", "hello")}
    return {
        "id": event_id,
        "type": event_type,
        "timestamp": timestamp,
        "sequence": int(event_id.split("-")[-1]),
        "target": {"selector": selector, "tagName": "input"},
        "data": data,
        "context": {"url": "https://example.com/"},
        "metadata": {"sessionId": "s", "reliability": {"confidence": extra.pop("confidence", 1.0)}},
    }


@pytest.fixture
def client():
    reset_sessions()
    with TestClient(create_app()) as test_client:
        yield test_client
    reset_sessions()


@pytest.fixture
def session_id(client):
    response = client.post(
        "/api/v1/recorder/sessions",
        json={"form_selectors": {"#email": "#login", "#password": "#login"}},
    )
    assert response.status_code == 200
    return response.json()["session_id"]


def _load(client, session_id, events):
    response = client.post(f"/api/v1/recorder/sessions/{session_id}/events", json={"events": events})
    assert response.status_code == 200
    response = client.post(f"/api/v1/recorder/sessions/{session_id}/process")
    assert response.status_code == 200
    return response.json()


class TestSessions:
    """Tests for session lifecycle endpoints."""

    def test_create_with_defaults(self, client):
        response = client.post("/api/v1/recorder/sessions", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["options"]["processingBatchSize"] == 100
        assert data["buffer_size"] == 0

    def test_create_with_options(self, client):
        response = client.post(
            "/api/v1/recorder/sessions",
            json={"options": {"add_smart_waits": False, "processing_batch_size": 5}},
        )

        assert response.json()["options"]["addSmartWaits"] is False

    def test_invalid_options_rejected(self, client):
        response = client.post(
            "/api/v1/recorder/sessions",
            json={"options": {"max_event_buffer_size": 10, "processing_batch_size": 20}},
        )

        assert response.status_code == 422

    def test_unknown_session_404(self, client):
        response = client.get("/api/v1/recorder/sessions/nope/events")
        assert response.status_code == 404

    def test_delete_session(self, client, session_id):
        assert client.delete(f"/api/v1/recorder/sessions/{session_id}").status_code == 200
        assert client.get(f"/api/v1/recorder/sessions/{session_id}").status_code == 404

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestIngestAndProcess:
    """Tests for ingestion, processing and queries."""

    def test_ingest_and_process(self, client, session_id):
        """Test events flow through the pipeline."""
        result = _load(client, session_id, [
            _wire_event("e-1", "click", 0),
            _wire_event("e-2", "click", 300),
            _wire_event("e-3", "mousemove", 400, selector="body"),
            _wire_event("e-4", "input", 2000, selector="#email"),
            _wire_event("e-5", "input", 2100, selector="#password"),
        ])

        assert result["success"] is True
        assert result["original_count"] == 5
        assert result["processed_count"] == 4
        assert result["groups_created"] == 1

        events = client.get(f"/api/v1/recorder/sessions/{session_id}/events").json()["events"]
        assert [e["type"] for e in events] == ["dblclick", "wait", "input", "input"]

    def test_invalid_event_rejected(self, client, session_id):
        response = client.post(
            f"/api/v1/recorder/sessions/{session_id}/events",
            json={"events": [{"type": "click"}]},
        )
        assert response.status_code == 422

    def test_null_timestamp_accepted(self, client, session_id):
        """Test events with a null timestamp are processed with the rest of the batch."""
        broken = _wire_event("e-1", "click", 0)
        broken["timestamp"] = None

        result = _load(client, session_id, [broken, _wire_event("e-2", "click", 50, selector="#other")])

        assert result["processed_count"] == 2

    def test_filters(self, client, session_id):
        _load(client, session_id, [
            _wire_event("e-1", "click", 0, selector="#save"),
            _wire_event("e-2", "click", 100, selector="#cancel", confidence=0.2),
            _wire_event("e-3", "input", 200, selector="#email"),
        ])
        base = f"/api/v1/recorder/sessions/{session_id}/events"

        clicks = client.get(base, params={"types": ["click"]}).json()
        assert clicks["total"] == 2

        errors = client.get(base, params={"errors_only": True}).json()
        assert [e["target"]["selector"] for e in errors["events"]] == ["#cancel"]

        by_element = client.get(base, params={"group_by": "element"}).json()
        selectors = [e["target"]["selector"] for e in by_element["events"]]
        assert selectors == sorted(selectors)

    def test_statistics(self, client, session_id):
        _load(client, session_id, [
            _wire_event("e-1", "click", 0),
            _wire_event("e-2", "click", 50),
        ])

        data = client.get(f"/api/v1/recorder/sessions/{session_id}/statistics").json()

        assert data["stats"]["duplicatesRemoved"] == 1
        assert data["most_used_events"] == [{"type": "click", "count": 1}]

    def test_rrweb_ingest(self, client, session_id, sample_rrweb_recording):
        """Test rrweb recordings are converted and grouped by snapshot forms."""
        response = client.post(
            f"/api/v1/recorder/sessions/{session_id}/rrweb",
            json={"events": sample_rrweb_recording},
        )
        assert response.json()["accepted"] == 8

        result = client.post(f"/api/v1/recorder/sessions/{session_id}/process").json()

        assert result["processed_count"] == 7
        groups = client.get(f"/api/v1/recorder/sessions/{session_id}/groups").json()["groups"]
        assert groups[0]["description"] == "Form interaction: #login-form"


    def test_rrweb_keeps_session_form_selectors(self, client, sample_rrweb_recording):
        """Test configured form selectors still group events after an rrweb ingest."""
        session_id = client.post(
            "/api/v1/recorder/sessions",
            json={"form_selectors": {"#street": "#address", "#city": "#address"}},
        ).json()["session_id"]
        client.post(f"/api/v1/recorder/sessions/{session_id}/rrweb", json={"events": sample_rrweb_recording})
        client.post(f"/api/v1/recorder/sessions/{session_id}/process")

        _load(client, session_id, [
            _wire_event("e-1", "input", 5000, selector="#street"),
            _wire_event("e-2", "input", 5100, selector="#city"),
        ])

        groups = client.get(f"/api/v1/recorder/sessions/{session_id}/groups").json()["groups"]
        assert [g["description"] for g in groups] == [
            "Form interaction: #login-form",
            "Form interaction: #address",
        ]


class TestGroupsMarkersAnnotationsExport:
    """Tests for group, marker, annotation, export and clear endpoints."""

    def test_manual_group(self, client, session_id):
        _load(client, session_id, [_wire_event("e-1", "click", 0), _wire_event("e-2", "click", 5000, selector="#b")])

        response = client.post(
            f"/api/v1/recorder/sessions/{session_id}/groups",
            json={"event_ids": ["e-1", "missing"], "name": "Start"},
        )

        assert response.json()["success"] is True
        groups = client.get(f"/api/v1/recorder/sessions/{session_id}/groups").json()["groups"]
        assert groups[0]["events"] == ["e-1"]

    def test_markers_sorted(self, client, session_id):
        base = f"/api/v1/recorder/sessions/{session_id}/markers"
        client.post(base, json={"timestamp": 500, "type": "end", "label": "End"})
        client.post(base, json={"timestamp": 0, "type": "start", "label": "Start"})

        markers = client.get(base).json()["markers"]

        assert [m["label"] for m in markers] == ["Start", "End"]

    def test_annotations(self, client, session_id):
        _load(client, session_id, [_wire_event("e-1", "click", 0)])
        base = f"/api/v1/recorder/sessions/{session_id}/events"

        ok = client.post(f"{base}/e-1/annotations", json={"content": "Primary CTA", "type": "label"})
        missing = client.post(f"{base}/nope/annotations", json={"content": "x"})

        assert ok.json()["success"] is True
        assert missing.status_code == 200
        assert missing.json() == {"success": False, "annotation_id": None}

    def test_export_and_clear(self, client, session_id):
        _load(client, session_id, [_wire_event("e-1", "click", 0)])

        snapshot = client.get(f"/api/v1/recorder/sessions/{session_id}/export").json()
        assert set(snapshot) == {"events", "groups", "timeline", "metadata"}
        assert snapshot["events"][0]["id"] == "e-1"

        client.post(f"/api/v1/recorder/sessions/{session_id}/clear")

        stats = client.get(f"/api/v1/recorder/sessions/{session_id}/statistics").json()["stats"]
        assert all(value == 0 for value in stats.values())
        events = client.get(f"/api/v1/recorder/sessions/{session_id}/events").json()
        assert events["total"] == 0

"""
Flask route tests using the test client.
"""

from unittest.mock import patch

import pytest

from app import create_app
from core.exceptions import ExportJobConflictError
from config import TestingConfig
from modules.snapshot_mapper import snapshot_to_dict
from routes.exports import _sanitize_record, _sanitize_text


WAIT = 30.0


# Fixtures

@pytest.fixture
def app(tmp_path, photo_dir):
    class Config(TestingConfig):
        EXPORT_ROOT_DIR = str(tmp_path / "exports")
        PHOTO_ROOT_DIR = str(photo_dir)
        EXPORT_PHOTO_MAX_WIDTH = 320

    app = create_app(Config)
    yield app
    app.config["EXPORT_JOB_SERVICE"].shutdown(timeout_per_thread=5.0)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def payload(sample_snapshot):
    return {"checkup": snapshot_to_dict(sample_snapshot), "options": {"formats": ["document", "text"]}}


class TestHealth:

    def test_health_ok(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["checks"] == {"export_root": "writable", "job_service": "ok"}

    def test_health_degraded_after_shutdown(self, app, client):
        app.config["EXPORT_JOB_SERVICE"].shutdown()

        response = client.get("/health")

        assert response.status_code == 503
        assert response.get_json()["status"] == "degraded"


class TestStartExport:

    def test_export_runs_to_completion(self, app, client, payload):
        response = client.post("/exports", json=payload)

        assert response.status_code == 202
        job_id = response.get_json()["job_id"]
        assert response.get_json()["status_url"] == f"/exports/{job_id}"

        app.config["EXPORT_JOB_SERVICE"].wait(job_id, timeout=WAIT)
        body = client.get(f"/exports/{job_id}").get_json()

        assert body["status"] == "completed"
        assert body["result"]["completion"] == {"document": True, "text": True}
        assert body["result"]["is_final"] is True

    def test_validation_errors_are_returned_together(self, client, payload):
        payload["checkup"]["header"]["technician"]["name"] = ""
        payload["checkup"]["header"]["island"]["island_type"] = "  "

        response = client.post("/exports", json=payload)

        assert response.status_code == 422
        body = response.get_json()
        assert body["error"] == "validation_failed"
        assert body["messages"] == [
            "Equipment type (island type) is required",
            "Technician name is required",
        ]

    @pytest.mark.parametrize("body", [
        None,
        {"options": {}},
        {"checkup": "not an object"},
        {"checkup": {"header": {}}},
    ])
    def test_malformed_requests(self, client, body):
        response = client.post("/exports", json=body)
        assert response.status_code == 400
        assert response.get_json()["error"] == "bad_request"

    def test_unknown_format(self, client, payload):
        payload["options"] = {"formats": ["pdf"]}
        assert client.post("/exports", json=payload).status_code == 400

    def test_photo_outside_photo_root_rejected(self, client, payload):
        payload["checkup"]["modules"][0]["items"][0]["photos"][0]["file_path"] = "/etc/passwd"

        response = client.post("/exports", json=payload)

        assert response.status_code == 400
        assert "photo-1" in response.get_json()["message"]

    def test_relative_photo_path_is_exported(self, app, client, payload):
        photos = payload["checkup"]["modules"][0]["items"][0]["photos"]
        photos[0]["file_path"] = "IMG_0001.jpg"
        photos[1]["file_path"] = "IMG_0002.jpg"
        payload["options"] = {"formats": ["photo_folder"]}

        job_id = client.post("/exports", json=payload).get_json()["job_id"]
        state = app.config["EXPORT_JOB_SERVICE"].wait(job_id, timeout=WAIT)

        assert state.latest_result.statistics.photos_exported == 2

    def test_conflicting_export_is_409(self, app, client, payload):
        job_service = app.config["EXPORT_JOB_SERVICE"]
        conflict = ExportJobConflictError("3f2a9c1e", "job-old")

        with patch.object(job_service, "submit", side_effect=conflict):
            response = client.post("/exports", json=payload)

        assert response.status_code == 409
        assert response.get_json()["details"]["running_job_id"] == "job-old"


class TestEstimate:

    def test_estimate(self, client, payload):
        response = client.post("/exports/estimate", json=payload)

        assert response.status_code == 200
        body = response.get_json()
        assert [e["format"] for e in body["estimations"]] == ["document", "text"]
        assert body["total_size_bytes"] > 0


class TestJobs:

    def test_unknown_job_is_404(self, client):
        response = client.get("/exports/nope")

        assert response.status_code == 404
        assert response.get_json()["error"] == "ExportJobNotFoundError"

    def test_cancel_finished_job(self, app, client, payload):
        job_id = client.post("/exports", json=payload).get_json()["job_id"]
        app.config["EXPORT_JOB_SERVICE"].wait(job_id, timeout=WAIT)

        body = client.post(f"/exports/{job_id}/cancel").get_json()

        assert body == {"job_id": job_id, "cancel_requested": False, "status": "completed"}

    def test_list_exports(self, app, client, payload):
        job_id = client.post("/exports", json=payload).get_json()["job_id"]
        app.config["EXPORT_JOB_SERVICE"].wait(job_id, timeout=WAIT)

        body = client.get("/exports").get_json()

        assert len(body["exports"]) == 1
        assert "_Checkup_Rossi_Figli_S_p_A_3f2a9c1e" in body["exports"][0]["name"]
        assert [job["job_id"] for job in body["jobs"]] == [job_id]


class TestCleanup:

    def test_cleanup(self, client):
        response = client.post("/exports/cleanup", json={"older_than_days": 7})
        assert response.get_json() == {"removed": 0, "older_than_days": 7}

    @pytest.mark.parametrize("days", ["soon", -1, 100000])
    def test_invalid_days(self, client, days):
        response = client.post("/exports/cleanup", json={"older_than_days": days})
        assert response.status_code == 400


class TestSanitize:

    def test_markup_is_stripped(self):
        assert _sanitize_text("<b>Perdita</b> olio & grasso") == "Perdita olio & grasso"

    def test_length_limit(self):
        assert len(_sanitize_text("x" * 50, max_length=10)) == 10

    def test_record_free_text_fields(self):
        record = {
            "modules": [{"items": [{"notes": "<script>x</script>ok", "status": "<OK>"}]}],
            "header": {"notes": "  <i>nota</i>  "},
        }

        cleaned = _sanitize_record(record)

        item = cleaned["modules"][0]["items"][0]
        assert "<" not in item["notes"]
        assert item["status"] == "<OK>"
        assert cleaned["header"]["notes"] == "nota"

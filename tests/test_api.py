"""Tests for REST API."""

import os

import pytest
from overlaygraph.api.routes import CollectorAPI
from overlaygraph.ingest.collector import PROCESSED


def _fragment(node_id, neighbors=()):
    return {
        "protocolId": 1,
        "protocolName": "proto",
        "nodes": {node_id: {"neighbors": list(neighbors), "topics": ["t"]}},
    }


@pytest.fixture
def api(tmp_path):
    api = CollectorAPI(str(tmp_path))
    api.collector.start()
    yield api
    api.collector.stop()


@pytest.fixture
def api_client(api):
    app = api.create_app()
    app.config["TESTING"] = True
    return app.test_client()


class TestAPI:
    def test_health(self, api_client):
        resp = api_client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["errors"] == 0

    def test_submit_report(self, api_client):
        resp = api_client.post("/api/v1/reports/p1", json=_fragment("1"))
        assert resp.status_code == 202
        assert resp.get_json() == {"participant": "p1", "checkpoint": 0}
        resp = api_client.post("/api/v1/reports/p1", json=_fragment("1"))
        assert resp.get_json()["checkpoint"] == 1

    def test_submit_not_json(self, api_client):
        resp = api_client.post("/api/v1/reports/p1", data="hello", content_type="text/plain")
        assert resp.status_code == 400

    def test_submit_invalid_report(self, api_client):
        resp = api_client.post("/api/v1/reports/p1", json={"nodes": {}})
        assert resp.status_code == 400

    def test_submit_json_array(self, api_client):
        resp = api_client.post("/api/v1/reports/p1", json=[_fragment("1")])
        assert resp.status_code == 400

    def test_merge_unknown_protocol(self, api_client):
        resp = api_client.post("/api/v1/merge/nothing")
        assert resp.status_code == 404

    def test_merge_and_overlay(self, api, api_client):
        api_client.post("/api/v1/reports/p1", json=_fragment("1", ["2"]))
        api_client.post("/api/v1/reports/p2", json=_fragment("2", ["1"]))
        api_client.post("/api/v1/reports/p1", json=_fragment("1", ["2"]))

        resp = api_client.post("/api/v1/merge/proto")
        assert resp.status_code == 200
        assert resp.get_json()["reports"] == 2
        assert os.path.isdir(os.path.join(api.root, PROCESSED, "proto"))

        resp = api_client.get("/api/v1/overlay/proto?at=0")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["boundary"] == 2
        assert len(data["nodes"]) == 2
        assert len(data["links"]) == 2

        data = api_client.get("/api/v1/overlay/proto?at=1").get_json()
        assert [n["id"] for n in data["nodes"]] == ["1"]

    def test_overlay_unknown_protocol(self, api_client):
        resp = api_client.get("/api/v1/overlay/nothing")
        assert resp.status_code == 404

    def test_overlay_unknown_message(self, api_client):
        api_client.post("/api/v1/reports/p1", json=_fragment("1"))
        api_client.post("/api/v1/merge/proto")
        resp = api_client.get("/api/v1/overlay/proto?message=m1")
        assert resp.status_code == 400


class TestBackpressure:
    def test_full_queue_returns_503(self, tmp_path):
        api = CollectorAPI(str(tmp_path), maxsize=1, submit_timeout=0.01)
        app = api.create_app()
        app.config["TESTING"] = True
        client = app.test_client()

        assert client.post("/api/v1/reports/p1", json=_fragment("1")).status_code == 202
        assert client.post("/api/v1/reports/p1", json=_fragment("1")).status_code == 503

        api.collector.queue.get_nowait()
        api.collector.queue.task_done()
        resp = client.post("/api/v1/reports/p1", json=_fragment("1"))
        assert resp.status_code == 202
        assert resp.get_json()["checkpoint"] == 1

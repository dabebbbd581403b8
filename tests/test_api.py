import pytest
from fastapi.testclient import TestClient

from api.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_modal_endpoint(client, building_document):
    response = client.post("/building/modal", json={
        "model": building_document,
        "options": {"defaultDampingRatio": 0.03},
    })

    assert response.status_code == 200
    data = response.json()
    assert len(data["frequenciesHz"]) == 6
    assert data["baseShape"]["story"] == 2
    assert len(data["C_matrix"]) == 6


def test_complex_modal_endpoint(client, building_document):
    response = client.post("/building/complex-modal", json={"model": building_document})

    assert response.status_code == 200
    modes = response.json()["complex"]["modes"]
    frequencies = [m["frequencyHz"] for m in modes]
    assert frequencies == sorted(frequencies)


def test_time_history_endpoint(client, building_document):
    response = client.post("/building/time-history", json={
        "model": building_document,
        "wave": {"dt": 0.01, "accX": [0, 5, 10, 5, 0, -5], "accY": [0, 0, 1, 0, 0, 0]},
        "options": {"beta": 0.25, "gamma": 0.5},
    })

    assert response.status_code == 200
    data = response.json()
    assert data["meta"]["massCount"] == 2
    assert len(data["records"]) == 6
    assert len(data["records"][0]) == len(data["header"])


def test_invalid_model_is_bad_request(client, building_document):
    building_document["model"]["walls"][0]["name"] = "missing"

    response = client.post("/building/modal", json={"model": building_document})

    assert response.status_code == 400
    assert response.json()["field"] == "walls[0].name"


def test_invalid_option_is_bad_request(client, building_document):
    response = client.post("/building/modal", json={
        "model": building_document,
        "options": {"defaultDampingRatio": "high"},
    })

    assert response.status_code == 400
    assert response.json()["field"] == "defaultDampingRatio"


def test_massless_story_is_unprocessable(client, building_document):
    building_document["model"]["structInfo"]["weight"] = [100, 0]

    response = client.post("/building/modal", json={"model": building_document})

    assert response.status_code == 422
    assert "positive definite" in response.json()["detail"]


def test_time_history_websocket_streams_chunks(client, building_document):
    with client.websocket_connect("/ws/time-history") as ws:
        ws.send_json({
            "model": building_document,
            "wave": {"dt": 0.01, "accX": [0, 1, 2, 3, 2, 1, 0]},
            "chunkSize": 3,
        })
        messages = [ws.receive_json()]
        while messages[-1]["type"] != "DONE":
            messages.append(ws.receive_json())

    assert [m["type"] for m in messages] == ["INIT", "DATA", "DATA", "DATA", "DONE"]
    assert messages[0]["steps"] == 7
    assert sum(len(m["rows"]) for m in messages if m["type"] == "DATA") == 7


def test_time_history_websocket_reports_errors(client, building_document):
    with client.websocket_connect("/ws/time-history") as ws:
        ws.send_json({"model": building_document, "wave": {"dt": 0.01, "accX": [0, 1]}, "chunkSize": "3"})
        message = ws.receive_json()

    assert message["type"] == "ERROR"
    assert "chunkSize" in message["message"]


def test_non_numeric_wave_sample_is_bad_request(client, building_document):
    response = client.post("/building/time-history", json={
        "model": building_document,
        "wave": {"dt": 0.01, "accX": ["a", 1.0]},
    })

    assert response.status_code == 400
    assert response.json()["field"] == "wave.accX"


def test_time_history_websocket_rejects_null_sample(client, building_document):
    with client.websocket_connect("/ws/time-history") as ws:
        ws.send_json({"model": building_document, "wave": {"dt": 0.01, "accX": [0, None, 1]}})
        message = ws.receive_json()

    assert message["type"] == "ERROR"
    assert "wave.accX" in message["message"]

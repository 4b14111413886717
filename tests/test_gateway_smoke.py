"""Smoke tests for the gateway Flask application."""

import sys
from pathlib import Path

# Ensure gateway package is importable (dev mode without pip install)
_gateway_dir = str(Path(__file__).resolve().parent.parent / "gateway")
if _gateway_dir not in sys.path:
    sys.path.insert(0, _gateway_dir)

import pytest

from face_dedup.config import get_default_config
from face_dedup.coordinator import DedupCoordinator
from face_dedup.errors import LockTimeout, PersistenceFailed
from face_dedup.storage import InMemoryDescriptorStore

try:
    from face_dedup_gateway.app import create_app
except ImportError:
    from app import create_app


@pytest.fixture
def config():
    config = get_default_config()
    config["storage"]["backend"] = "memory"
    config["matching"]["descriptor_length"] = 2
    return config


@pytest.fixture
def store():
    return InMemoryDescriptorStore()


@pytest.fixture
def app(config, store):
    coordinator = DedupCoordinator(store, descriptor_length=2)
    app = create_app(config, coordinator=coordinator)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


def submit(client, payload, **kwargs):
    return client.post("/api/face/check-or-save", json=payload, **kwargs)


def test_new_face_saved(client, store):
    response = submit(client, {"descriptor": [0.0, 0.0], "image": "data:image/jpeg;base64,AAAA"})

    assert response.status_code == 201
    assert response.get_json() == {"message": "New face saved"}
    assert store.count() == 1
    assert store.load_all()[0].image == "data:image/jpeg;base64,AAAA"


def test_face_exists(client, store):
    submit(client, {"descriptor": [0.0, 0.0]})
    response = submit(client, {"descriptor": [0.1, 0.1]})

    assert response.status_code == 200
    assert response.get_json() == {"message": "Face exists"}
    assert store.count() == 1


def test_example_scenario_count(client):
    for descriptor in ([0.0, 0.0], [0.1, 0.1], [5.0, 5.0]):
        submit(client, {"descriptor": descriptor})

    response = client.get("/api/face/count")
    assert response.get_json() == {"count": 2}


def test_metadata_from_request(client, store):
    submit(
        client,
        {"descriptor": [0.0, 0.0], "location": {"city": "Lagos", "country": "Nigeria"}},
        headers={"User-Agent": "Mozilla/5.0 TestBrowser", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )

    metadata = store.load_all()[0].metadata
    assert metadata.device == "Mozilla/5.0 TestBrowser"
    assert metadata.network_origin == "203.0.113.9"
    assert metadata.location == {"city": "Lagos", "country": "Nigeria"}


def test_device_from_body(client, store):
    submit(client, {"descriptor": [0.0, 0.0], "device": "kiosk-7"})

    assert store.load_all()[0].metadata.device == "kiosk-7"


def test_remote_addr_fallback(client, store):
    submit(client, {"descriptor": [0.0, 0.0]})

    assert store.load_all()[0].metadata.network_origin == "127.0.0.1"


@pytest.mark.parametrize("payload", [
    {},
    {"descriptor": [0.0, 0.0, 0.0]},
    {"descriptor": "0,0"},
    {"descriptor": [0.0, 0.0], "location": "Lagos"},
    {"descriptor": [0.0, 0.0], "image": 42},
    [0.0, 0.0],
])
def test_bad_submission(client, store, payload):
    response = submit(client, payload)

    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"
    assert store.count() == 0


def test_invalid_json(client):
    response = client.post(
        "/api/face/check-or-save",
        data="{not json",
        content_type="application/json",
    )

    assert response.status_code == 400


def test_oversized_integer_is_400(client, store):
    response = submit(client, {"descriptor": [10 ** 400, 0]})

    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"
    assert store.count() == 0


def test_payload_too_large(config, store):
    config["server"]["max_content_length"] = 64
    app = create_app(config, coordinator=DedupCoordinator(store, descriptor_length=2))

    with app.test_client() as client:
        response = submit(client, {"descriptor": [0.0, 0.0], "image": "x" * 200})

    assert response.status_code == 413
    assert store.count() == 0


class RaisingCoordinator(DedupCoordinator):
    def __init__(self, error):
        super().__init__(InMemoryDescriptorStore(), descriptor_length=2)
        self.error = error

    def process_submission(self, *args, **kwargs):
        raise self.error


def test_lock_timeout_is_503(config):
    app = create_app(config, coordinator=RaisingCoordinator(LockTimeout("busy")))

    with app.test_client() as client:
        response = submit(client, {"descriptor": [0.0, 0.0]})

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.get_json()["error"] == "LockTimeout"


def test_persistence_failure_is_500(config):
    app = create_app(config, coordinator=RaisingCoordinator(PersistenceFailed("disk full")))

    with app.test_client() as client:
        response = submit(client, {"descriptor": [0.0, 0.0]})

    assert response.status_code == 500
    assert response.get_json()["error"] == "PersistenceFailed"


def test_health(client):
    submit(client, {"descriptor": [0.0, 0.0]})
    response = client.get("/api/health")

    data = response.get_json()
    assert response.status_code == 200
    assert data["status"] == "ok"
    assert data["faces"] == 1
    assert data["stats"]["created"] == 1


def test_gateway_module_documented():
    assert sys.modules[create_app.__module__].__doc__

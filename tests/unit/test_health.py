import pytest
from conftest import FakeInferenceGateway, StaticAuthProvider
from fastapi.testclient import TestClient

from evalmate.api.main import create_app
from evalmate.storage.memory import InMemoryEvaluationStore


@pytest.mark.parametrize("path", ["/health", "/healthz", "/live"])
def test_health_endpoints(path: str) -> None:
    app = create_app(
        storage=InMemoryEvaluationStore(),
        inference_gateway=FakeInferenceGateway(),
        auth_provider=StaticAuthProvider(),
    )
    client = TestClient(app)
    response = client.get(path)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

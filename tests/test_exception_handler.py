from fastapi import HTTPException
from fastapi.testclient import TestClient

from popui.main import create_app
from popui.utils.errors import api_error, safe_api_error


def test_custom_http_exception_handler(test_settings, bridge):
    """Verify the app's exception handler unwraps 'error' details."""
    app = create_app(test_settings, bridge=bridge)

    @app.get("/error-custom")
    def error_custom():
        raise api_error("My Message", code="my_code")

    @app.get("/error-standard")
    def error_standard():
        raise HTTPException(status_code=404, detail="Not Found")

    @app.get("/error-internal")
    def error_internal():
        raise safe_api_error("Something failed", "token=abc123 leaked in stack")

    client = TestClient(app)

    # "error" sits at the root, not nested under "detail"
    response = client.get("/error-custom")
    assert response.status_code == 400
    assert response.json() == {"error": {"message": "My Message", "code": "my_code"}}

    response = client.get("/error-standard")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}

    response = client.get("/error-internal")
    assert response.status_code == 500
    assert response.json() == {"error": {"message": "Something failed", "code": "internal_error"}}


def test_api_error_sanitizes_messages():
    exc = api_error("upstream said api_key=sk-123 was wrong")

    assert "sk-123" not in exc.detail["error"]["message"]
    assert "[REDACTED]" in exc.detail["error"]["message"]


def test_validation_errors_are_422(client):
    response = client.post("/upload", json={"fileName": 5, "fileData": "nope"})

    assert response.status_code == 422
    assert "detail" in response.json()

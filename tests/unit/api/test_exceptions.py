import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ticketcore.api.exceptions import register_error_handler, MEDIA_TYPE
from ticketcore.domain.exceptions import NotFound, Conflict, InvalidInput, Forbidden, Unauthorized, InvalidState, \
    TamperedCode


def _client(exc: Exception) -> TestClient:
    app = FastAPI()
    register_error_handler(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return TestClient(app)


@pytest.mark.parametrize("exc, status, title", [
    (NotFound("Booking not found"), 404, "Not Found"),
    (Conflict("Ticket already used"), 409, "Conflict"),
    (InvalidState("Only confirmed bookings can be cancelled"), 409, "Invalid State"),
    (InvalidInput("Cannot book tickets for past events"), 400, "Bad Request"),
    (Forbidden("Access denied"), 403, "Forbidden"),
    (TamperedCode("Verification code does not match booking"), 422, "Tampered Code"),
])
def test_app_errors_map_to_problem_responses(exc, status, title):
    response = _client(exc).get("/boom")

    assert response.status_code == status
    assert response.headers["content-type"].startswith(MEDIA_TYPE)
    body = response.json()
    assert body["title"] == title
    assert body["detail"] == str(exc)


def test_context_is_exposed_in_problem_body():
    response = _client(Conflict("Ticket already used", ctx={"used_by": 5})).get("/boom")

    assert response.json()["context"] == {"used_by": 5}


def test_unauthorized_sets_www_authenticate_header():
    response = _client(Unauthorized("Invalid authentication credentials")).get("/boom")

    assert response.status_code == 401
    assert response.headers["www-authenticate"].startswith("Bearer ")

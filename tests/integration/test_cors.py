"""Integration tests covering CORS behaviour for API endpoints."""

import pytest
from flask.testing import FlaskClient

from netpay.backend.app import create_app

ALLOWED_ORIGIN = "https://allowed.test"
DISALLOWED_ORIGIN = "https://blocked.test"


@pytest.fixture()
def cors_client(monkeypatch: pytest.MonkeyPatch) -> FlaskClient:
    """Return a client configured with a known CORS allow-list."""

    monkeypatch.setenv("NETPAY_ALLOWED_ORIGINS", ALLOWED_ORIGIN)

    app = create_app()
    app.config.update(TESTING=True)

    with app.test_client() as client:
        yield client


def test_allowed_origin_receives_cors_headers(cors_client: FlaskClient) -> None:
    response = cors_client.get(
        "/api/v1/config/jurisdictions",
        headers={"Origin": ALLOWED_ORIGIN},
    )

    assert response.status_code == 200
    assert response.headers.get("Access-Control-Allow-Origin") == ALLOWED_ORIGIN


def test_disallowed_origin_does_not_receive_cors_headers(
    cors_client: FlaskClient,
) -> None:
    response = cors_client.get(
        "/api/v1/config/jurisdictions",
        headers={"Origin": DISALLOWED_ORIGIN},
    )

    assert "Access-Control-Allow-Origin" not in response.headers


def test_missing_allow_list_warns(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NETPAY_ALLOWED_ORIGINS", raising=False)

    with pytest.warns(UserWarning, match="No allowed origins configured"):
        create_app()

from unittest.mock import MagicMock

import pytest
import requests

from catalog import CatalogClient, create_client
from catalog.models import LoginResponse
from errors import AuthError, FetchError
from models import Brand


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


class StaticCredentials:
    def __init__(self, tokens=("token-1", "token-2")):
        self.tokens = list(tokens)
        self.invalidations = 0

    def get_valid_token(self):
        return self.tokens[min(self.invalidations, len(self.tokens) - 1)]

    def invalidate(self):
        self.invalidations += 1


@pytest.fixture()
def session():
    return MagicMock(spec=requests.Session, headers={})


@pytest.fixture()
def client(session):
    client = CatalogClient(base_url="https://catalog.test", session=session, login="M:1/C", password="secret")
    client.credentials = StaticCredentials()
    return client


def test_fetch_brands_accepts_envelope(client, session):
    session.get.return_value = _response(payload={"data": [{"id": 1, "name": " Apple "}, {"id": 2, "name": "Samsung"}]})

    assert client.fetch_brands() == [Brand(1, "Apple"), Brand(2, "Samsung")]
    args, kwargs = session.get.call_args
    assert args[0] == "https://catalog.test/app-api/v1/brands"
    assert kwargs["headers"]["Authorization"] == "Bearer token-1"
    assert kwargs["timeout"] == 10


def test_fetch_pricelist_parses_products(client, session):
    session.get.return_value = _response(payload=[
        {
            "id_product": 501,
            "id_brand": 9,
            "subcategory": "Phones",
            "chars_group": "iPhone 15 128GB Black",
            "total_qty": 5,
            "price": 3150,
            "country_abbr": "US",
            "extra": "ignored",
        },
        {"id_product": 502, "total_qty": "10+", "price": None},
    ])

    products = client.fetch_pricelist(9)

    assert session.get.call_args.kwargs["params"] == {"id_brand": 9}
    first, second = products
    assert first.id == 501
    assert first.brand_id == 9
    assert first.attribute_group == "iPhone 15 128GB Black"
    assert first.total_quantity == "5"
    assert first.price == 3150
    assert first.country_code == "US"
    assert second.total_quantity == "10+"
    assert second.price is None


def test_unauthorized_request_reauthenticates_once(client, session):
    session.get.side_effect = [_response(401), _response(payload=[])]

    assert client.fetch_pricelist(9) == []
    assert client.credentials.invalidations == 1
    tokens = [c.kwargs["headers"]["Authorization"] for c in session.get.call_args_list]
    assert tokens == ["Bearer token-1", "Bearer token-2"]


def test_second_unauthorized_response_is_not_retried(client, session):
    session.get.side_effect = [_response(401), _response(401)]

    with pytest.raises(FetchError) as exc_info:
        client.fetch_pricelist(9)
    assert exc_info.value.status_code == 401
    assert session.get.call_count == 2


def test_network_error_becomes_fetch_error(client, session):
    session.get.side_effect = requests.Timeout("read timed out")

    with pytest.raises(FetchError, match="timed out"):
        client.fetch_pricelist(9)


def test_server_error_becomes_fetch_error(client, session):
    session.get.return_value = _response(502)

    with pytest.raises(FetchError) as exc_info:
        client.fetch_brands()
    assert exc_info.value.status_code == 502


def test_malformed_payload_becomes_fetch_error(client, session):
    session.get.return_value = _response(payload={"message": "maintenance"})
    with pytest.raises(FetchError):
        client.fetch_pricelist(9)

    session.get.return_value = _response(payload=[{"chars_group": "no id"}])
    with pytest.raises(FetchError):
        client.fetch_pricelist(9)


def test_login_sends_credentials(client, session):
    session.post.return_value = _response(payload={"token": "fresh", "expires_in": 3600})

    response = client.login()

    assert response == LoginResponse(token="fresh", expires_in=3600)
    kwargs = session.post.call_args.kwargs
    assert kwargs["params"] == {"login": "M:1/C", "password": "secret"}
    assert kwargs["timeout"] == 15


def test_login_http_failure_is_auth_error(client, session):
    session.post.return_value = _response(403)
    with pytest.raises(AuthError):
        client.login()


def test_create_client_wires_credentials(conn, session):
    session.post.return_value = _response(payload={"token": "wired-token"})
    session.get.return_value = _response(payload=[])
    client = create_client(conn, base_url="https://catalog.test", session=session)

    client.fetch_brands()

    assert session.post.call_count == 1
    assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer wired-token"


def test_create_client_rejects_tokenless_login(conn, session):
    session.post.return_value = _response(payload={"status": "ok"})
    client = create_client(conn, base_url="https://catalog.test", session=session)

    with pytest.raises(AuthError):
        client.fetch_brands()
    session.get.assert_not_called()

"""HTTP client for brand and pricelist endpoints of the catalog API."""

import logging
import sqlite3
from typing import Any, Optional

import requests
from pydantic import ValidationError

from auth import CredentialManager
from catalog.models import BrandPayload, LoginResponse, ProductPayload
from config import (
    BRANDS_PATH,
    CATALOG_APP_ACCESS,
    CATALOG_BASE_URL,
    CATALOG_LOGIN,
    CATALOG_PASSWORD,
    LOGIN_PATH,
    LOGIN_TIMEOUT,
    PRICELIST_PATH,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from errors import AuthError, FetchError
from models import Brand, Product

logger = logging.getLogger(__name__)


def _unwrap(data: Any) -> list:
    """Accept either a bare list or a {"data": [...]} envelope."""
    if isinstance(data, dict):
        data = data.get("data", data.get("items"))
    if not isinstance(data, list):
        raise FetchError(f"Unexpected payload shape: {type(data).__name__}")
    return data


class CatalogClient:
    """Fetches brands and pricelists using tokens from a CredentialManager."""

    def __init__(
        self,
        base_url: str = CATALOG_BASE_URL,
        session: Optional[requests.Session] = None,
        login: str = CATALOG_LOGIN,
        password: str = CATALOG_PASSWORD,
        app_access: str = CATALOG_APP_ACCESS,
    ):
        self.base_url = base_url.rstrip("/")
        self.login_name = login
        self.password = password
        self.app_access = app_access
        self.credentials: Optional[CredentialManager] = None
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })

    def login(self) -> LoginResponse:
        """Run the login exchange. Does not touch the credential cache."""
        url = f"{self.base_url}{LOGIN_PATH}"
        headers = {"Content-Type": "application/json"}
        if self.app_access:
            headers["X-APP-ACCESS"] = self.app_access
        try:
            resp = self.session.post(
                url,
                params={"login": self.login_name, "password": self.password},
                headers=headers,
                timeout=LOGIN_TIMEOUT,
            )
            resp.raise_for_status()
            return LoginResponse.model_validate(resp.json())
        except requests.RequestException as e:
            raise AuthError(f"Login request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise AuthError(f"Malformed login response: {e}") from e

    def fetch_brands(self) -> list[Brand]:
        data = self._get(BRANDS_PATH)
        try:
            return [BrandPayload.model_validate(item).to_brand() for item in _unwrap(data)]
        except ValidationError as e:
            raise FetchError(f"Malformed brand list: {e}") from e

    def fetch_pricelist(self, brand_id: int) -> list[Product]:
        data = self._get(PRICELIST_PATH, params={"id_brand": brand_id})
        try:
            return [
                ProductPayload.model_validate(item).to_product(brand_id)
                for item in _unwrap(data)
            ]
        except ValidationError as e:
            raise FetchError(f"Malformed pricelist for brand {brand_id}: {e}") from e

    # --- Internals ---

    def _send(self, path: str, token: str, params: Optional[dict]) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise FetchError(f"Request to {path} failed: {e}") from e

    def _get(self, path: str, params: Optional[dict] = None) -> Any:
        """Authenticated GET; a 401 re-authenticates and retries once."""
        if self.credentials is None:
            raise AuthError("No credential manager bound to the catalog client")

        resp = self._send(path, self.credentials.get_valid_token(), params)
        if resp.status_code == 401:
            logger.warning(f"Got 401 from {path}, re-authenticating...")
            self.credentials.invalidate()
            resp = self._send(path, self.credentials.get_valid_token(), params)

        if resp.status_code >= 400:
            raise FetchError(
                f"{path} returned status {resp.status_code}", status_code=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(f"{path} returned invalid JSON: {e}") from e


def create_client(conn: sqlite3.Connection, **kwargs) -> CatalogClient:
    """Build a client with a CredentialManager persisting to ``conn``."""
    client = CatalogClient(**kwargs)
    client.credentials = CredentialManager(conn, client.login)
    return client

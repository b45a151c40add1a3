"""Thin wrapper around the Postman collections API."""

import requests

from postman_sync.config import DEFAULT_BASE_URL
from postman_sync.errors import UpstreamError


class PostmanClient:
    """Creates and updates collections via the Postman REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"X-Api-Key": api_key, "Content-Type": "application/json"}

    def create_collection(self, collection: dict, workspace_id: str = "") -> str:
        """POST a new collection and return the uid Postman assigned to it."""
        url = f"{self.base_url}/collections"
        params = {"workspace": workspace_id} if workspace_id else None
        resp = self._send("POST", url, collection, params=params)

        try:
            uid = resp.json()["collection"]["uid"]
        except (ValueError, KeyError, TypeError):
            uid = None
        if not isinstance(uid, str) or not uid:
            raise UpstreamError("POST", url, resp.status_code, f"response has no collection.uid: {resp.text}")
        return uid

    def update_collection(self, uid: str, collection: dict) -> str:
        """PUT the collection over the existing one. The uid does not change."""
        url = f"{self.base_url}/collections/{uid}"
        self._send("PUT", url, collection)
        return uid

    def _send(self, method: str, url: str, collection: dict, params: dict | None = None) -> requests.Response:
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json={"collection": collection},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(method, url, None, str(e)) from e

        if not 200 <= resp.status_code < 300:
            raise UpstreamError(method, url, resp.status_code, resp.text)
        return resp

# familybrief/hasura.py
import os
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx

from .errors import DataRequestError
from .logger import logger



class HasuraClient:
    """Minimal GraphQL request/response client.

    execute() returns the `data` object and raises DataRequestError with the
    first error's message when the response carries `errors`.
    """

    def __init__(self, url: str, admin_secret: Optional[str] = None, timeout: float = 20.0,
                 transport: Optional[httpx.BaseTransport] = None):
        headers = {"Content-Type": "application/json"}
        if admin_secret:
            headers["x-hasura-admin-secret"] = admin_secret
        self.url = url
        self._http = httpx.Client(headers=headers, timeout=timeout, transport=transport)

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = self._http.post(self.url, json={"query": query, "variables": variables or {}})
        try:
            body = resp.json()
        except ValueError:
            body = {}

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            message = (errors[0] or {}).get("message") or "GraphQL request failed"
            logger.debug(f"[HASURA] error: {message}")
            raise DataRequestError(message)
        if resp.status_code >= 400:
            raise DataRequestError(f"GraphQL request failed ({resp.status_code})")
        return (body or {}).get("data") or {}

    def close(self):
        self._http.close()


@lru_cache(maxsize=1)
def get_hasura() -> HasuraClient:
    url = os.getenv("HASURA_GRAPHQL_URL")
    if not url:
        raise RuntimeError("HASURA_GRAPHQL_URL not set")
    return HasuraClient(url, os.getenv("HASURA_ADMIN_SECRET"))

"""
Generic REST implementation of the remote data API.

Each table is a resource under ``base_url``:

    GET    {base_url}/{table}?<query>   -> list of rows
    POST   {base_url}/{table}           -> created row
    PATCH  {base_url}/{table}/{id}      -> updated row
    DELETE {base_url}/{table}/{id}
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .interfaces import RemoteDataAPI, RemoteRejectedError, RemoteUnavailableError
from ..storage.models import Record

logger = logging.getLogger(__name__)

# client errors that still mean "try again later"
RETRYABLE_STATUS = {408, 425, 429}


@dataclass
class RemoteAPIConfig:
    """Configuration for the remote data API connection"""
    base_url: str
    api_key: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    timeout: int = 30


class RestRemoteAPI(RemoteDataAPI):

    def __init__(self, config: RemoteAPIConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        # ask for the stored row back on writes instead of an empty 201/204
        self.session.headers.update({'Prefer': 'return=representation'})

        if config.headers:
            self.session.headers.update(config.headers)

        if config.api_key:
            self.session.headers.update({
                'apikey': config.api_key,
                'Authorization': f'Bearer {config.api_key}',
            })

    def _make_request(
        self,
        path: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Record] = None
    ) -> requests.Response:
        """
        Make an HTTP request and classify failures

        Args:
            path: Resource path appended to base_url
            method: HTTP method
            params: Query parameters
            data: JSON body

        Returns:
            Response object with a 2xx status

        Raises:
            RemoteUnavailableError: connection problems, timeouts, 5xx
            RemoteRejectedError: any other non-2xx status
        """
        url = f"{self.config.base_url.rstrip('/')}/{path}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=self.config.timeout
            )
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailableError(f"{method} {url} failed: {str(e)}")

        if response.ok:
            return response

        status = response.status_code
        message = f"{method} {url} returned {status}: {response.text[:200]}"
        if status >= 500 or status in RETRYABLE_STATUS:
            raise RemoteUnavailableError(message, status_code=status)
        raise RemoteRejectedError(message, status_code=status)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRejectedError(f"Malformed response body: {str(e)}",
                                      status_code=response.status_code)

    @classmethod
    def _single(cls, response: requests.Response) -> Optional[Record]:
        body = cls._json(response)
        # some backends wrap single rows in a list
        if isinstance(body, list):
            return body[0] if body else None
        return body

    def select(self, table: str, query: Optional[Dict[str, Any]] = None) -> List[Record]:
        body = self._json(self._make_request(table, params=query))
        if body is None:
            return []
        if not isinstance(body, list):
            raise RemoteRejectedError(f"Expected a list of rows from {table}")
        logger.debug(f"Selected {len(body)} rows from {table}")
        return body

    def insert(self, table: str, record: Record) -> Record:
        created = self._single(self._make_request(table, method="POST", data=record))
        return created if created is not None else dict(record)

    def update(self, table: str, record_id: str, patch: Record) -> Optional[Record]:
        return self._single(
            self._make_request(f"{table}/{record_id}", method="PATCH", data=patch)
        )

    def delete(self, table: str, record_id: str) -> None:
        self._make_request(f"{table}/{record_id}", method="DELETE")

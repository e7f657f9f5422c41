"""REST backend over aiohttp.

Maps the backend contract onto a conventional JSON resource API::

    find    GET    {base_url}/{table}/{id}
    create  POST   {base_url}/{table}
    update  PATCH  {base_url}/{table}/{id}
    remove  DELETE {base_url}/{table}/{id}
    list    GET    {base_url}/{table}?filters=<json>&limit=..&page=..
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import aiohttp

from pycrudsync.config import SyncConfig
from pycrudsync.exceptions import ConfigError, EntityNotFoundError, TransportError
from pycrudsync.models.requests import (
    CreateProps,
    FindProps,
    ListProps,
    Pagination,
    RemoveProps,
    UpdateProps,
)

_logger = logging.getLogger(__name__)

_JSON_HEADERS = {
    "accept": "application/json",
    "content-type": "application/json; charset=UTF-8",
}


class RestBackend:
    """Backend talking to a JSON REST API.

    The caller owns *http_session* unless it is omitted, in which case the
    backend creates one and closes it on :meth:`close` / ``async with`` exit.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if not config.base_url:
            raise ConfigError("RestBackend requires config.base_url")
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._external_session = http_session is not None
        self._http = http_session
        self._headers = {**_JSON_HEADERS, **(headers or {})}

    async def __aenter__(self) -> RestBackend:
        self._session()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None

    def _session(self) -> aiohttp.ClientSession:
        if self._http is None:
            timeout = aiohttp.ClientTimeout(total=self._config.request_timeout or None)
            self._http = aiohttp.ClientSession(timeout=timeout)
        return self._http

    def _endpoint(self, table: str, entity_id: str | None = None) -> str:
        endpoint = f"/{quote(table, safe='')}"
        if entity_id is not None:
            endpoint = f"{endpoint}/{quote(entity_id, safe='')}"
        return endpoint

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        table: str,
        entity_id: str | None = None,
        body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        url = f"{self._base_url}{endpoint}"
        data = json.dumps(body, separators=(",", ":")) if body is not None else None

        _logger.debug("%s %s", method, url)

        try:
            async with self._session().request(
                method,
                url,
                data=data,
                params=params,
                headers=self._headers,
            ) as resp:
                text = await resp.text()
                if resp.status == 404 and entity_id is not None:
                    raise EntityNotFoundError(
                        f"{table}/{entity_id} not found",
                        table=table,
                        entity_id=entity_id,
                    )
                if resp.status < 200 or resp.status >= 300:
                    raise TransportError(
                        f"HTTP {resp.status} from {method} {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                        table=table,
                    )
        except (TransportError, EntityNotFoundError):
            raise
        except aiohttp.ClientError as exc:
            raise TransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
                table=table,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
                table=table,
            ) from exc

    async def find(self, *, table: str, id: str) -> Any:
        request = FindProps(table=table, id=id)
        endpoint = self._endpoint(request.table, request.id)
        return await self._request("GET", endpoint, table=request.table, entity_id=request.id)

    async def create(self, *, table: str, data: Any) -> Any:
        request = CreateProps(table=table, data=data)
        endpoint = self._endpoint(request.table)
        return await self._request("POST", endpoint, table=request.table, body=request.data)

    async def update(self, *, table: str, id: str, data: Any) -> Any:
        request = UpdateProps(table=table, id=id, data=data)
        endpoint = self._endpoint(request.table, request.id)
        return await self._request(
            "PATCH",
            endpoint,
            table=request.table,
            entity_id=request.id,
            body=request.data,
        )

    async def remove(self, *, table: str, id: str) -> Any:
        request = RemoveProps(table=table, id=id)
        endpoint = self._endpoint(request.table, request.id)
        return await self._request("DELETE", endpoint, table=request.table, entity_id=request.id)

    async def list(
        self,
        *,
        table: str,
        filters: dict[str, Any] | None = None,
        pagination: Pagination | dict[str, Any] | None = None,
    ) -> list[Any]:
        request = ListProps(table=table, filters=filters, pagination=pagination)
        params: dict[str, str] = {}
        if request.filters:
            params["filters"] = json.dumps(request.filters, separators=(",", ":"))
        if request.pagination is not None:
            if request.pagination.limit is not None:
                params["limit"] = str(request.pagination.limit)
            params["page"] = str(request.pagination.page)
        endpoint = self._endpoint(request.table)
        result = await self._request("GET", endpoint, table=request.table, params=params or None)
        if not isinstance(result, list):
            raise TransportError(
                f"Expected a JSON array from {endpoint}",
                endpoint=endpoint,
                table=request.table,
            )
        return result

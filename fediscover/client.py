"HTTP client for the instance APIs"

import asyncio
import json
import logging

from typing import Optional, Type, TypeVar

import aiohttp

from pydantic import BaseModel, ValidationError

from .common import (
    USER_AGENT,
    HTTPStatusError,
    NetworkError,
    RequestTimeout,
    SchemaValidationError,
)

Model = TypeVar("Model", bound=BaseModel)


class ProtocolClient:
    """Fetches an instance API endpoint and validates the JSON it returns.

    Every failure is reported as a RequestError subclass. Nothing is retried
    here: retrying is decided by the caller for the whole instance.
    """

    REQUEST_TIMEOUT: float = 5
    MAX_CONNECTIONS: int = 30

    def __init__(
        self,
        request_timeout: Optional[float] = None,
        max_connections: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.request_timeout = (
            request_timeout if request_timeout is not None else self.REQUEST_TIMEOUT
        )
        self.concurrent_connection_sem = asyncio.Semaphore(
            max_connections or self.MAX_CONNECTIONS
        )
        self.logger = logger or logging.getLogger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    async def open(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, *args, **kwargs):
        await self.close()

    async def get(self, url: str, model: Type[Model]) -> Model:
        """Query an instance API and returns the validated response.

        Args:
            url (str): URL of the API endpoint
            model (Type[BaseModel]): expected shape of the JSON response

        Raises:
            RequestTimeout: if the request exceeds the request timeout.
            NetworkError: if the connection fails.
            HTTPStatusError: if the status code is not 2xx.
            SchemaValidationError: if the body is not JSON or has the wrong shape.

        Returns:
            BaseModel: the validated response.
        """
        if self.session is None:
            await self.open()
        assert self.session is not None

        self.logger.debug("Fetching %s", url)
        async with self.concurrent_connection_sem:
            try:
                async with self.session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.request_timeout)
                ) as resp:
                    if not 200 <= resp.status < 300:
                        raise HTTPStatusError(url, resp.status)
                    data = await resp.read()
            except aiohttp.ClientError as err:
                raise NetworkError(url, str(err) or type(err).__name__) from err
            except asyncio.TimeoutError as err:
                raise RequestTimeout(
                    url, f"Connection timed out after {self.request_timeout}s"
                ) from err
            except ValueError as err:
                if err.args and err.args[0] == "Can redirect only to http or https":
                    raise NetworkError(url, "Invalid redirect") from err
                raise

        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as err:
            raise SchemaValidationError(url, f"Cannot decode JSON ({err})") from err

        try:
            return model.model_validate(payload)
        except ValidationError as err:
            raise SchemaValidationError(
                url,
                f"Unexpected {model.__name__} response: {err.error_count()} error(s)",
            ) from err

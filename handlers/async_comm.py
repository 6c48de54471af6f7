"""Asynchronous HTTP transport for the relay synthesis providers.

`AsyncHttp` wraps an aiohttp session, decodes responses through content type handlers and
turns transport failures into `AsyncCommError`. Error responses keep their HTTP status and
decoded body on the exception so callers can map them to their own error taxonomy.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from aiohttp.client import ClientResponse


__all__: list[str] = ["AsyncCommError", "AsyncCommInvalidContentTypeError", "AsyncCommTimeoutError", "AsyncHttp"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

CONNECT_TIMEOUT: Final[float] = 1.0


class AsyncHttp:
    """Asynchronous HTTP client with pluggable response decoding.

    Responses are decoded by the handler registered for their Content-Type. JSON and text
    handlers are registered by default; providers add handlers for audio types as needed.
    """

    def __init__(self, *, headers: dict[str, str] | None = None) -> None:
        """Create the client and its session.

        Args:
            headers (dict[str, str] | None): Headers sent with every request.
        """
        logger.info("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self.default_headers: dict[str, str] = dict(headers or {})
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("text/plain", lambda x: x.decode("utf-8"))
        self.add_handler("text/html", lambda x: x.decode("utf-8"))
        self.add_handler("application/json", lambda x: json.loads(x.decode("utf-8")))
        self.initialize_session()

    async def __aenter__(self) -> Self:
        self.initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    def initialize_session(self) -> None:
        """Open a new session unless one is already open."""
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(headers=self.default_headers)
            logger.debug("%s session initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        if self.__session is None or self.__session.closed:
            msg = "Session is not initialized or has been closed"
            raise RuntimeError(msg)
        return self.__session

    @property
    def closed(self) -> bool:
        return self.__session is None or self.__session.closed

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
            logger.info("%s session closed", self.__class__.__name__)

    async def get(
        self,
        *,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> Any:
        """Perform a GET request and return the decoded body."""
        logger.debug("'url': '%s', 'timeout': '%s'", url, total_timeout)
        return await self._request("GET", url=url, params=params, headers=headers, total_timeout=total_timeout)

    async def post(
        self,
        *,
        url: str,
        params: dict[str, str] | None = None,
        data: Any | None = None,
        headers: dict[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> Any:
        """Perform a POST request with a JSON body and return the decoded body.

        Args:
            url (str): Request URL.
            params (dict[str, str] | None): Query parameters.
            data (Any | None): JSON-serialisable request body.
            headers (dict[str, str] | None): Extra headers for this request.
            total_timeout (float): Total timeout in seconds; 0 or less disables it.

        Returns:
            Any: The decoded response body.
        """
        # Request bodies may hold user text; only the keys are logged
        logger.debug("'url': '%s', 'body keys': %s, 'timeout': '%s'", url, list(data or {}), total_timeout)
        return await self._request(
            "POST", url=url, params=params, json=data, headers=headers, total_timeout=total_timeout
        )

    async def decode_response(self, resp: ClientResponse) -> Any:
        """Decode a response body with the handler registered for its Content-Type.

        Raises:
            AsyncCommInvalidContentTypeError: If no handler is registered for the content type.
        """
        content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip()
        raw: bytes = await resp.read()
        if not raw:
            logger.debug("Received empty response")
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(content_type)
        if handler:
            return handler(raw)

        msg: str = f"Unknown Content-Type '{content_type}'"
        raise AsyncCommInvalidContentTypeError(msg, status=resp.status)

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Register the decoder used for a content type, replacing any existing one."""
        if content_type in self.content_handlers:
            logger.debug("Replacing handler for content type '%s'", content_type)
        self.content_handlers[content_type] = handler

    @staticmethod
    def _build_timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        if total_timeout < CONNECT_TIMEOUT:
            # A connect timeout longer than the total timeout would never apply
            return aiohttp.ClientTimeout(total=total_timeout)
        return aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

    async def _request(
        self,
        method: HTTPMethod,
        *,
        url: str,
        total_timeout: float,
        **kwargs: Any,
    ) -> Any:
        """Send a request and decode the response.

        Raises:
            AsyncCommTimeoutError: If the request times out.
            AsyncCommError: On connection failures and on responses with status 400 or above.
                The exception carries `status` and the decoded `payload` of error responses.
        """
        try:
            async with self.session.request(
                method=method, url=url, timeout=self._build_timeout(total_timeout), **kwargs
            ) as resp:
                if resp.status >= 400:
                    payload: Any = await self._read_error_payload(resp)
                    msg = f"Error response from the server: status='{resp.status}'"
                    raise AsyncCommError(msg, status=resp.status, payload=payload)
                return await self.decode_response(resp)

        except TimeoutError as err:
            logger.debug(err)
            msg = "Timeout due to a lack of response from the server."
            raise AsyncCommTimeoutError(msg) from err
        except ConnectionResetError as err:
            logger.debug(err)
            msg = "The connection to the server has been disconnected."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientConnectorError as err:
            logger.debug(err)
            msg = "The server is not running, or the port is closed."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientResponseError as err:
            logger.debug(err)
            msg = "Error response from the server."
            raise AsyncCommError(msg, status=err.status) from err
        except aiohttp.ClientError as err:
            logger.debug(err)
            msg = f"HTTP client error: {err}"
            raise AsyncCommError(msg) from err

    async def _read_error_payload(self, resp: ClientResponse) -> Any:
        """Best-effort decoding of an error body; undecodable bodies yield None."""
        try:
            return await self.decode_response(resp)
        except (AsyncCommInvalidContentTypeError, UnicodeDecodeError, ValueError) as err:
            logger.debug("Could not decode error response: %s", err)
            return None


class AsyncCommError(Exception):
    """Error raised by the asynchronous HTTP transport.

    Attributes:
        msg (str): Error message.
        status (int | None): HTTP status of the failed response, if there was one.
        payload (Any): Decoded body of the failed response, if it could be decoded.
    """

    def __init__(self, msg: str | BaseException, *, status: int | None = None, payload: Any = None) -> None:
        self.msg: str = str(msg)
        self.status: int | None = status
        self.payload: Any = payload
        if status is not None and f"status='{status}'" not in self.msg:
            self.msg = f"{self.msg}: status='{status}'"
        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """The request did not complete within its timeout."""


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """No handler is registered for the content type of a response."""

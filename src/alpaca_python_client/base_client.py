from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from pydantic import BaseModel, TypeAdapter, ValidationError
from requests.exceptions import InvalidHeader, RequestException
from requests.utils import check_header_validity
from .errors import (
    APIError,
    ConfigError,
    DeserializeError,
    RateLimitedError,
    TransportError,
)
import requests
import logging
import json
import re


logger = logging.getLogger("alpaca.rest")

DEFAULT_TIMEOUT = 30.0

_UNSIGNED_INT = re.compile(r"[0-9]+")


def validate_header(name: str, value: str) -> None:
    """
    Reject header names/values that cannot be sent on the wire.

    Raises
    ------
    ConfigError
        If the value holds CR/LF, leading whitespace, non-ASCII
        characters or is not a string.
    """
    if not isinstance(name, str) or not isinstance(value, str):
        raise ConfigError(f"invalid header {name!r}: expected str")

    try:
        check_header_validity((name, value))
    except InvalidHeader as exc:
        raise ConfigError(f"invalid header {name!r}: {exc}") from exc

    try:
        value.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ConfigError(
            f"invalid header {name!r}: value is not ASCII"
        ) from exc


@dataclass(frozen=True)
class EndpointConfig:
    """Immutable connection settings owned by one `RestClient`."""

    base_url: str
    headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    timeout: float = DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        # Header values carry credentials, only show the names.
        return (
            f"EndpointConfig(base_url={self.base_url!r}, "
            f"headers={sorted(self.headers)!r}, timeout={self.timeout!r})"
        )


class RestClientBuilder:
    """
    Fluent construction step for `RestClient`.

    Headers are validated as soon as they are added, so a bad
    credential fails here and never reaches a network call.
    """

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url
        self._headers: Dict[str, str] = {}
        self._timeout = DEFAULT_TIMEOUT

    def header(self, name: str, value: str) -> "RestClientBuilder":
        validate_header(name, value)
        self._headers[name] = value
        return self

    def default_headers(
        self,
        headers: Mapping[str, str]
    ) -> "RestClientBuilder":
        """Replace the default header set."""
        for name, value in headers.items():
            validate_header(name, value)
        self._headers = dict(headers)
        return self

    def timeout(self, seconds: float) -> "RestClientBuilder":
        if seconds <= 0:
            raise ConfigError(f"timeout must be positive, got {seconds}")
        self._timeout = float(seconds)
        return self

    def build(self) -> "RestClient":
        if not self._base_url:
            raise ConfigError("base URL must not be empty")

        for name, value in self._headers.items():
            validate_header(name, value)

        config = EndpointConfig(
            base_url=self._base_url,
            headers=MappingProxyType(dict(self._headers)),
            timeout=self._timeout,
        )
        return RestClient(config)


@lru_cache(maxsize=None)
def _adapter(response_model: Any) -> TypeAdapter:
    return TypeAdapter(response_model)


def _encode_body(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(mode="json", by_alias=True, exclude_none=True)
    return body


def parse_retry_after(value: Optional[str]) -> int:
    """Seconds from a `retry-after` header, 1 when missing or invalid."""
    if value is None:
        return 1
    value = value.strip()
    if not _UNSIGNED_INT.fullmatch(value):
        return 1
    return int(value)


class RestClient:
    """
    Generic JSON-over-HTTP client bound to one base URL.

    Every verb funnels the raw response through `_handle_response`, the
    single place where a response becomes either a typed value or one
    of the errors in `alpaca_python_client.errors`.

    The client holds no mutable state after construction and issues one
    independent `requests.request` per call, so it can be shared by
    several threads.

    Attributes
    ----------
    config : EndpointConfig
        Base URL, default headers and request timeout.
    """

    def __init__(self, config: EndpointConfig) -> None:
        self.config = config

    @staticmethod
    def builder(base_url: str) -> RestClientBuilder:
        return RestClientBuilder(base_url)

    def url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Sequence[Tuple[str, str]]] = None,
        body: Any = None,
        has_body: bool = False,
    ) -> requests.Response:
        url = self.url(path)
        logger.debug(f"{method} {url}")

        kwargs: Dict[str, Any] = {
            "headers": dict(self.config.headers),
            "timeout": self.config.timeout,
        }
        if params:
            kwargs["params"] = list(params)
        if has_body:
            kwargs["json"] = _encode_body(body)

        try:
            return requests.request(method, url, **kwargs)
        except RequestException as exc:
            raise TransportError(str(exc)) from exc

    def _check_status(self, response: requests.Response) -> None:
        status = response.status_code

        if status == 429:
            retry_after = parse_retry_after(
                response.headers.get("retry-after")
            )
            logger.warning(f"Rate limited, retry after {retry_after}s")
            raise RateLimitedError(retry_after)

        if not 200 <= status < 300:
            try:
                body = response.text or ""
            except RequestException:
                body = ""
            raise APIError(status, body)

    def _handle_response(
        self,
        response: requests.Response,
        response_model: Any = None,
    ) -> Any:
        """
        Classify one HTTP response.

        Parameters
        ----------
        response : requests.Response
            Raw response returned by `requests`.
        response_model : type, optional
            Target shape understood by pydantic (a model, `list[Model]`,
            ...). When omitted the decoded JSON value is returned.

        Raises
        ------
        RateLimitedError
            Status 429.
        APIError
            Any other status outside 2xx.
        DeserializeError
            2xx body that is not valid JSON or does not fit the model.
        TransportError
            The body could not be read.
        """
        self._check_status(response)

        try:
            text = response.text
        except RequestException as exc:
            raise TransportError(str(exc)) from exc

        try:
            if response_model is None:
                return json.loads(text)
            return _adapter(response_model).validate_json(text)
        except (ValueError, ValidationError) as exc:
            raise DeserializeError(str(exc)) from exc

    def get(self, path: str, response_model: Any = None) -> Any:
        response = self._send("GET", path)
        return self._handle_response(response, response_model)

    def get_with_query(
        self,
        path: str,
        query: Sequence[Tuple[str, str]],
        response_model: Any = None,
    ) -> Any:
        """GET with query pairs appended (and URL-encoded) by requests."""
        response = self._send("GET", path, params=query)
        return self._handle_response(response, response_model)

    def post(self, path: str, body: Any, response_model: Any = None) -> Any:
        response = self._send("POST", path, body=body, has_body=True)
        return self._handle_response(response, response_model)

    def patch(self, path: str, body: Any, response_model: Any = None) -> Any:
        response = self._send("PATCH", path, body=body, has_body=True)
        return self._handle_response(response, response_model)

    def delete(self, path: str) -> None:
        """DELETE for endpoints that return no useful body."""
        response = self._send("DELETE", path)
        self._check_status(response)

    def delete_parsed(self, path: str, response_model: Any = None) -> Any:
        """DELETE for endpoints returning the deleted/closed resource."""
        response = self._send("DELETE", path)
        return self._handle_response(response, response_model)

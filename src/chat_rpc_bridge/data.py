"""
Wire types and the line codec for requests and responses.

A request is a single chat message addressed to the server:

    <@SERVER_ID>:api METHOD ENCODED_ROUTE [JSON_BODY]

A response is a single reply to that message:

    STATUS JSON_BODY
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar
from urllib.parse import parse_qsl, quote, unquote, urlsplit

import orjson

from chat_rpc_bridge.exceptions import (
    RPCBadRequestError,
    RPCMalformedResponseError,
    RPCMethodError,
    RPCSerializationError,
)


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1


def _widen_ints(data: Any) -> Any:
    """Replace integers orjson cannot encode with floats, as a JSON number would read in JS."""
    if isinstance(data, int) and not isinstance(data, bool):
        return data if _INT_MIN <= data <= _INT_MAX else float(data)
    if isinstance(data, dict):
        return {key: _widen_ints(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_widen_ints(value) for value in data]
    return data


def dumps(data: Any) -> str:
    """
    Serialize *data* to compact JSON text.

    Integers outside the 64-bit range are sent as floats and therefore lose precision.
    """
    option = orjson.OPT_NON_STR_KEYS
    try:
        return orjson.dumps(data, option=option).decode("utf-8")
    except orjson.JSONEncodeError as e:
        error = e
    try:
        return orjson.dumps(_widen_ints(data), option=option).decode("utf-8")
    except (orjson.JSONEncodeError, OverflowError):
        raise RPCSerializationError(f"Value is not JSON serializable: {error}") from error


def loads(text: str) -> Any:
    return orjson.loads(text)


def split_route(route: str) -> tuple[str, dict[str, str]]:
    """
    Split a decoded route into its path and query mapping.

    Fragments are not recognised, so ``#`` stays part of the path or query.
    Duplicate query keys keep the last value.
    """
    parts = urlsplit(route, allow_fragments=False)
    path = parts.path or "/"
    if not path.startswith("/"):
        path = "/" + path
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    return path, query


@dataclass(frozen=True)
class RPCRequest:
    """A request as it travels on the wire; ``route`` is the unencoded path plus query."""

    method: HttpMethod
    route: str = "/"
    body: Any = None

    @property
    def path(self) -> str:
        return split_route(self.route)[0]

    @property
    def query(self) -> dict[str, str]:
        return split_route(self.route)[1]


@dataclass(frozen=True)
class RPCResponse:
    """A decoded response line."""

    status: int
    body: Any = None

    @property
    def is_intermediate(self) -> bool:
        return 100 <= self.status < 200

    @property
    def is_final(self) -> bool:
        return not self.is_intermediate

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    def raise_for_status(self) -> RPCResponse:
        if self.status >= 400:
            raise RPCMethodError(self.status, self.body)
        return self


@dataclass(frozen=True)
class APIRouteInfo:
    """Public description of a registered route; never carries the handler."""

    method: HttpMethod
    path: str
    docs: str | None = field(default=None)

    def to_dict(self) -> dict[str, str]:
        data = {"method": self.method.value, "path": self.path}
        if self.docs is not None:
            data["docs"] = self.docs
        return data

    @classmethod
    def from_dict(cls, data: Any) -> APIRouteInfo:
        if not isinstance(data, dict):
            raise ValueError(f"Route entry must be an object, got {type(data).__name__}")
        path = data.get("path")
        docs = data.get("docs")
        if not isinstance(path, str):
            raise ValueError("Route entry is missing a string 'path'")
        if docs is not None and not isinstance(docs, str):
            raise ValueError("Route entry 'docs' must be a string")
        return cls(method=HttpMethod(data.get("method")), path=path, docs=docs)


class RPCCodec:
    """Encodes and decodes protocol lines for one addressed identity."""

    MARKER: ClassVar[str] = "api"
    DOCS_COMMAND: ClassVar[str] = "docs"
    ROUTES_COMMAND: ClassVar[str] = "routes"

    # Characters encodeURIComponent leaves alone, on top of quote()'s unreserved set
    _ROUTE_SAFE: ClassVar[str] = "!~*'()"

    def __init__(self, target_id: str):
        """
        Args:
            target_id: Identity of the server being addressed (or, server side, our own)
        """
        self.target_id = target_id
        self._command_pattern = re.compile(
            rf"<@!?{re.escape(target_id)}>:{self.MARKER}\s*(.*)", re.DOTALL
        )

    @property
    def prefix(self) -> str:
        return f"<@{self.target_id}>:{self.MARKER}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def encode_command(self, command: str = "") -> str:
        return f"{self.prefix} {command}" if command else self.prefix

    def encode_request(self, request: RPCRequest) -> str:
        method = HttpMethod(request.method)
        line = f"{self.prefix} {method.value} {quote(request.route, safe=self._ROUTE_SAFE)}"
        if request.body is not None:
            line += f" {dumps(request.body)}"
        return line

    def parse_command(self, content: str) -> str | None:
        """Return the command text after the addressing prefix, or None if not addressed to us."""
        match = self._command_pattern.fullmatch(content)
        if match is None:
            return None
        return match.group(1).strip()

    def split_request(self, command: str) -> tuple[HttpMethod, str, str | None]:
        """
        Split ``METHOD ROUTE [BODY]`` into its parts.

        Raises:
            RPCBadRequestError: If the method keyword is not recognised
        """
        parts = command.split(None, 2)
        keyword = parts[0].upper() if parts else ""
        try:
            method = HttpMethod(keyword)
        except ValueError:
            raise RPCBadRequestError(f"Invalid method '{keyword}'") from None
        route = unquote(parts[1]) if len(parts) > 1 else "/"
        body_text = parts[2].strip() if len(parts) > 2 else None
        return method, route, body_text or None

    def decode_body(self, body_text: str | None) -> Any:
        if body_text is None:
            return None
        try:
            return loads(body_text)
        except orjson.JSONDecodeError as e:
            raise RPCBadRequestError("Invalid JSON body") from e

    def decode_request(self, command: str) -> RPCRequest:
        method, route, body_text = self.split_request(command)
        return RPCRequest(method=method, route=route, body=self.decode_body(body_text))

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    @staticmethod
    def encode_response(response: RPCResponse) -> str:
        return f"{response.status} {dumps(response.body)}"

    @staticmethod
    def decode_response(content: str) -> RPCResponse:
        """
        Decode a ``STATUS JSON`` line.

        Raises:
            RPCMalformedResponseError: If the line cannot be decoded; ``status`` is set
                whenever the status code itself was readable
        """
        status_text, sep, body_text = content.partition(" ")
        if not sep:
            raise RPCMalformedResponseError("Malformed response: no space separator.")
        try:
            status = int(status_text)
        except ValueError:
            raise RPCMalformedResponseError(
                f"Malformed response: invalid status {status_text!r}."
            ) from None
        try:
            body = loads(body_text)
        except orjson.JSONDecodeError:
            raise RPCMalformedResponseError(
                "Malformed response: Invalid JSON body.", status=status
            ) from None
        return RPCResponse(status=status, body=body)

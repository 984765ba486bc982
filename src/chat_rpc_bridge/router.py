"""
Route table: registration-ordered, first match wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar, Union

from chat_rpc_bridge.data import APIRouteInfo, HttpMethod

if TYPE_CHECKING:
    from chat_rpc_bridge.server import ServerRequest, ServerResponse

logger = logging.getLogger(__name__)

Handler = Callable[["ServerRequest", "ServerResponse"], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class Route:
    method: HttpMethod
    path: str
    pattern: re.Pattern[str]
    param_names: tuple[str, ...]
    handler: Handler
    docs: str | None = None

    def info(self) -> APIRouteInfo:
        return APIRouteInfo(method=self.method, path=self.path, docs=self.docs)


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    params: dict[str, str]


class Router:
    """
    Ordered route table.

    Templates such as ``/balance/:userId`` are compiled once at registration. Each
    ``:name`` captures one path segment (no slashes). The whole path must match and a
    trailing slash is optional. Overlapping templates are resolved purely by
    registration order.
    """

    PARAM_MARKER: ClassVar[str] = ":"

    def __init__(self) -> None:
        self._routes: list[Route] = []

    @classmethod
    def compile(cls, path: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
        pieces = re.split(rf"{re.escape(cls.PARAM_MARKER)}(\w+)", path)
        # re.split alternates literal text and captured parameter names
        literals, names = pieces[0::2], tuple(pieces[1::2])
        regex = re.escape(literals[0])
        for literal in literals[1:]:
            regex += "([^/]+)" + re.escape(literal)
        return re.compile(f"{regex}/?"), names

    def register(
        self,
        method: HttpMethod | str,
        path: str,
        handler: Handler,
        docs: str | None = None,
    ) -> Route:
        try:
            method = HttpMethod(method.upper())
        except ValueError:
            raise ValueError(f"Unsupported method: {method}") from None
        pattern, names = self.compile(path)
        route = Route(
            method=method,
            path=path,
            pattern=pattern,
            param_names=names,
            handler=handler,
            docs=docs,
        )
        self._routes.append(route)
        logger.info(f"Registered route: {method.value} {path}")
        return route

    def match(self, method: HttpMethod | str, path: str) -> RouteMatch | None:
        for route in self._routes:
            if route.method != method:
                continue
            found = route.pattern.fullmatch(path)
            if found:
                return RouteMatch(route=route, params=dict(zip(route.param_names, found.groups())))
        return None

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def describe(self) -> list[APIRouteInfo]:
        return [route.info() for route in self._routes]

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)

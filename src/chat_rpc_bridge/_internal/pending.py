"""
Client-side table of outstanding calls, keyed by the id of the request message.

    AWAITING_INITIAL --(1xx update)--> AWAITING_FINAL --(final)--> SETTLED
           |                                                          ^
           +----------------(final / malformed / timeout)------------+

Only mutated from the transport listener and from timer callbacks, both running on the
same event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from chat_rpc_bridge.data import RPCResponse
from chat_rpc_bridge.exceptions import RPCTimeoutError

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[RPCResponse], Any]


class CallState(str, Enum):
    AWAITING_INITIAL = "AWAITING_INITIAL"
    AWAITING_FINAL = "AWAITING_FINAL"
    SETTLED = "SETTLED"


@dataclass
class PendingCall:
    future: asyncio.Future[RPCResponse]
    on_update: UpdateCallback | None = None
    timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> CallState:
        if self.future.done():
            return CallState.SETTLED
        if self.timer is None:
            return CallState.AWAITING_FINAL
        return CallState.AWAITING_INITIAL

    def disarm(self) -> None:
        """Cancel the initial-reply timer. Safe to call any number of times."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class PendingCallTable:
    def __init__(self) -> None:
        self._calls: dict[str, PendingCall] = {}
        self._update_tasks: set[asyncio.Future[Any]] = set()

    def register(
        self,
        call_id: str,
        future: asyncio.Future[RPCResponse],
        timeout: float,
        on_update: UpdateCallback | None = None,
    ) -> PendingCall:
        loop = asyncio.get_running_loop()
        call = PendingCall(future=future, on_update=on_update)
        call.timer = loop.call_later(timeout, self._expire, call_id, timeout)
        self._calls[call_id] = call
        future.add_done_callback(lambda f: self._discard_cancelled(call_id, f))
        return call

    def get(self, call_id: str) -> PendingCall | None:
        return self._calls.get(call_id)

    def update(self, call_id: str, response: RPCResponse) -> None:
        """Handle an intermediate reply: disarm the timer, then notify."""
        call = self._calls.get(call_id)
        if call is None:
            return
        call.disarm()
        if call.on_update is None:
            return
        try:
            result = call.on_update(response)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._update_tasks.add(task)
                task.add_done_callback(self._finish_update)
        except Exception:
            logger.error(f"Update callback for call {call_id} failed", exc_info=True)

    def resolve(self, call_id: str, response: RPCResponse) -> None:
        call = self._calls.pop(call_id, None)
        if call is None:
            return
        call.disarm()
        if not call.future.done():
            call.future.set_result(response)

    def reject(self, call_id: str, exc: BaseException) -> None:
        call = self._calls.pop(call_id, None)
        if call is None:
            return
        call.disarm()
        if not call.future.done():
            call.future.set_exception(exc)

    def fail_all(self, exc: BaseException) -> None:
        for call_id in list(self._calls):
            self.reject(call_id, exc)

    def _expire(self, call_id: str, timeout: float) -> None:
        call = self._calls.get(call_id)
        if call is None or call.timer is None:
            return
        call.timer = None
        self.reject(
            call_id,
            RPCTimeoutError(
                f"Request timed out after {timeout}s waiting for an initial response."
            ),
        )

    def _discard_cancelled(self, call_id: str, future: asyncio.Future[RPCResponse]) -> None:
        if not future.cancelled():
            return
        call = self._calls.get(call_id)
        if call is not None and call.future is future:
            call.disarm()
            del self._calls[call_id]

    def _finish_update(self, task: asyncio.Future[Any]) -> None:
        self._update_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Update callback failed", exc_info=task.exception())

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    def __len__(self) -> int:
        return len(self._calls)

#!/usr/bin/env python3
"""
Bank RPC Server Example

Exposes a tiny bank API on a chat channel. ``build_server`` is shared with
``bank_client.py``, which runs both ends on one in-process channel.
"""

from __future__ import annotations

import asyncio
import logging

from chat_rpc_bridge import ChatTransport, RPCServer, ServerRequest, ServerResponse

logger = logging.getLogger(__name__)

DOCS = """
Bank API

GET  /balance/:userId         Balance of a user
POST /pay/:userId?amount=N    Credit a user, optional body {"memo": "..."}
POST /audit                   Long-running audit, streams 102 progress updates
"""


class Bank:
    """A bank keeping balances per user id."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        # handlers interleave at await points, so writes are serialized explicitly
        self._lock = asyncio.Lock()

    async def balance(self, req: ServerRequest, res: ServerResponse) -> None:
        user = req.params["userId"]
        logger.info(f"balance({user}) requested by {req.author_id}")
        await res.status(200).json({"amount": self.balances.get(user, 0)})

    async def pay(self, req: ServerRequest, res: ServerResponse) -> None:
        amount = req.query.get("amount")
        if not amount or not amount.isdigit():
            await res.status(400).json({"error": "You need a positive integer amount"})
            return
        user = req.params["userId"]
        async with self._lock:
            self.balances[user] = self.balances.get(user, 0) + int(amount)
            total = self.balances[user]
        memo = req.body.get("memo") if isinstance(req.body, dict) else None
        logger.info(f"pay({user}, {amount}) memo={memo!r}")
        await res.status(200).json({"amount": total})

    async def audit(self, req: ServerRequest, res: ServerResponse) -> None:
        users = sorted(self.balances)
        for index, user in enumerate(users):
            await res.status(102).json({"checked": user, "done": index + 1, "of": len(users)})
            await asyncio.sleep(0.5)
        await res.status(200).json({"total": sum(self.balances.values())})


def build_server(transport: ChatTransport) -> RPCServer:
    bank = Bank()
    server = RPCServer(transport, docs=DOCS)
    server.register("GET", "/balance/:userId", bank.balance, "Balance of a user")
    server.register("POST", "/pay/:userId", bank.pay, "Credit a user by ?amount=N")
    server.register("POST", "/audit", bank.audit, "Audit every account")
    return server

from __future__ import annotations

import asyncio

import pytest

from chat_rpc_bridge import RPCClient
from chat_rpc_bridge.data import APIRouteInfo, HttpMethod, RPCResponse
from chat_rpc_bridge.exceptions import RPCMethodError

from .conftest import SERVER_ID


@pytest.fixture
def bank(server):
    """A server with a small, stateful bank API."""
    balances: dict[str, int] = {"742396813826457750": 50000000}

    @server.get("/balance/:userId", docs="Balance of a user")
    async def balance(req, res) -> None:
        user = req.params["userId"]
        if user not in balances:
            await res.status(404).json({"error": f"Unknown user {user}"})
            return
        await res.status(200).json({"amount": balances[user]})

    @server.post("/pay/:userId", docs="Pay a user; ?amount=N")
    async def pay(req, res) -> None:
        amount = req.query.get("amount")
        if not amount:
            await res.status(400).json({"error": "You need an amount"})
            return
        user = req.params["userId"]
        balances[user] = balances.get(user, 0) + int(amount)
        await res.status(200).json({"amount": balances[user], "memo": (req.body or {}).get("memo")})

    @server.post("/audit")
    async def audit(req, res) -> None:
        for step in range(3):
            await res.status(102).json({"step": step})
            await asyncio.sleep(0.05)
        await res.status(200).json({"accounts": len(balances)})

    @server.delete("/balance/:userId")
    def close_account(req, res) -> None:
        raise RuntimeError("accounts cannot be closed")

    server.start()
    return server


class TestClientServerIntegration:
    @pytest.mark.asyncio
    async def test_simple_call(self, bank, client) -> None:
        response = await client.get("/balance/742396813826457750")
        assert response == RPCResponse(200, {"amount": 50000000})

    @pytest.mark.asyncio
    async def test_multiple_calls_from_same_client(self, bank, client) -> None:
        paid = await client.post("/pay/1?amount=25", body={"memo": "lunch & coffee"})
        assert paid.body == {"amount": 25, "memo": "lunch & coffee"}
        assert (await client.get("/balance/1")).body == {"amount": 25}

        missing = await client.post("/pay/1")
        assert missing.status == 400
        with pytest.raises(RPCMethodError, match="You need an amount"):
            missing.raise_for_status()

    @pytest.mark.asyncio
    async def test_calls_from_different_clients(
        self, bank, client, channel, bystander_transport
    ) -> None:
        other = RPCClient(bystander_transport, SERVER_ID, timeout=0.5)
        mine, theirs = await asyncio.gather(
            client.post("/pay/a?amount=1"),
            other.post("/pay/b?amount=2"),
        )
        assert mine.body["amount"] == 1
        assert theirs.body["amount"] == 2
        other.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout", [0.03], indirect=True)
    async def test_long_call_kept_alive(self, bank, client) -> None:
        updates = []
        response = await client.post("/audit", on_update=lambda u: updates.append(u.body))
        assert response.body == {"accounts": 1}
        assert updates == [{"step": 0}, {"step": 1}, {"step": 2}]

    @pytest.mark.asyncio
    async def test_server_side_errors(self, bank, client) -> None:
        assert await client.get("/nope") == RPCResponse(
            404, {"error": "Route not found: GET /nope"}
        )
        assert await client.delete("/balance/1") == RPCResponse(
            500, {"error": "Internal Server Error"}
        )
        assert (await client.get("/balance/unknown")).status == 404

    @pytest.mark.asyncio
    async def test_docs_and_routes(self, bank, client) -> None:
        assert await client.docs() == "Bank API\n\nGET /balance/:userId"
        assert await client.routes() == [
            APIRouteInfo(HttpMethod.GET, "/balance/:userId", "Balance of a user"),
            APIRouteInfo(HttpMethod.POST, "/pay/:userId", "Pay a user; ?amount=N"),
            APIRouteInfo(HttpMethod.POST, "/audit"),
            APIRouteInfo(HttpMethod.DELETE, "/balance/:userId"),
        ]

#!/usr/bin/env python3
"""
Bank RPC Client Example

Runs the bank server and a client on the same in-process chat channel and prints
the conversation as it would appear in the channel.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from bank_server import build_server

from chat_rpc_bridge import LocalChannel, RPCClient, RPCError, RPCResponse

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

SERVER_ID = "742396813826457750"
CLIENT_ID = "108139857493180416"


def print_separator() -> None:
    print("-" * 60)


def show_progress(update: RPCResponse) -> None:
    print(f"   ... {update.status} {update.body}")


async def demonstrate_bank(client: RPCClient) -> None:
    print_separator()
    print("Bank RPC Client Demo")
    print_separator()

    print("\n1. Docs:")
    print(await client.docs())

    print("2. Routes:")
    for route in await client.routes():
        print(f"   {route.method.value:6} {route.path:20} {route.docs or ''}")

    print("\n3. Payments:")
    for user, amount in (("alice", 120), ("bob", 80), ("alice", 30)):
        response = await client.post(f"/pay/{user}?amount={amount}", body={"memo": "demo"})
        print(f"   pay {user} {amount} -> {response.status} {response.body}")

    print("\n4. Balance:")
    response = await client.get("/balance/alice")
    print(f"   alice -> {response.body['amount']}")

    print("\n5. Errors:")
    for method, route in (("POST", "/pay/alice"), ("GET", "/nope")):
        response = await client.call(method, route)
        print(f"   {method} {route} -> {response.status} {response.body}")

    print("\n6. Long-running call kept alive past the 1s timeout:")
    response = await client.post("/audit", on_update=show_progress, timeout=1.0)
    print(f"   audit -> {response.status} {response.body}")

    print_separator()
    print("Demo completed successfully!")
    print_separator()


async def main() -> None:
    channel = LocalChannel("bank")
    server = build_server(channel.connect(SERVER_ID))
    server.start()

    with RPCClient(channel.connect(CLIENT_ID), SERVER_ID, timeout=5.0) as client:
        await demonstrate_bank(client)

    server.close()
    await channel.drain()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except RPCError as e:
        print(f"\nRPC Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(0)

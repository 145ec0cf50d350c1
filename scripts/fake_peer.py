#!/usr/bin/env python3
"""
Fake Execution Peer

Stands in for the browser extension so the relay can be exercised without a
browser. It:
1. Listens for the relay on ws://localhost:8765
2. Prints the capability list received in `sync`
3. Acknowledges register/unregister and keepalive messages
4. Answers every `execute` with a canned result (or an error when the
   capability's target pattern contains "fail")

Usage:
    python scripts/fake_peer.py
    monkey-relay --peer-url ws://localhost:8765
"""

import asyncio
import json
import sys

import websockets

HOST = "localhost"
PORT = 8765


def make_result(message: dict) -> dict:
    """Build a result for an execute request."""
    if "fail" in message.get("targetPattern", ""):
        return {
            "type": "result",
            "requestId": message["requestId"],
            "value": None,
            "error": f"No open tab matches the URL pattern: {message.get('targetPattern')}",
        }

    try:
        args = json.loads(message["args"]) if message.get("args") else {}
    except json.JSONDecodeError:
        args = message.get("args")

    return {
        "type": "result",
        "requestId": message["requestId"],
        "value": {
            "capability": message.get("name"),
            "args": args,
            "payloadLength": len(message.get("payload", "")),
        },
    }


async def handle_relay(ws):
    print("\n" + "=" * 70)
    print("🔌 RELAY CONNECTED")
    print("=" * 70)

    async for raw in ws:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            print(f"   ? Invalid JSON from relay: {raw!r}")
            continue

        msg_type = data.get("type", "unknown")

        if msg_type == "sync":
            capabilities = data.get("capabilities", [])
            print(f"\n📋 Synced {len(capabilities)} capability(ies):")
            for cap in capabilities:
                print(f"   • {cap['name']} ({cap.get('targetPattern', '')})")

        elif msg_type == "register":
            print(f"\n📝 Registered: {data['name']}")
            await ws.send(json.dumps({"type": "register-ack", "name": data["name"]}))

        elif msg_type == "unregister":
            print(f"\n🗑️  Unregistered: {data['name']}")
            await ws.send(json.dumps({"type": "unregister-ack", "name": data["name"]}))

        elif msg_type == "execute":
            print(f"\n📥 Execute {data['name']} (request {data['requestId']})")
            result = make_result(data)
            await ws.send(json.dumps(result))
            print("✅ Error sent" if result.get("error") else "✅ Result sent")

        elif msg_type == "keepalive":
            await ws.send(json.dumps({"type": "keepalive-ack"}))

        else:
            print(f"\n   ? Received {msg_type}: {json.dumps(data, indent=2)}")

    print("\n🔚 Relay disconnected")


async def main():
    print("=" * 70)
    print("🐒 FAKE EXECUTION PEER")
    print("=" * 70)
    print(f"Listening on ws://{HOST}:{PORT}")
    print("⌨️  Press Ctrl+C to quit")

    try:
        async with websockets.serve(handle_relay, HOST, PORT):
            await asyncio.Future()
    except OSError as e:
        print(f"❌ Cannot listen on {HOST}:{PORT}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Fake peer shutting down")

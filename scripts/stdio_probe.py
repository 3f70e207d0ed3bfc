#!/usr/bin/env python3
"""
Interactive probe for the stdio server.

Starts server.py as a subprocess, performs the initialize handshake with the
elicitation capability, calls the topping recommender without a flavour and
answers the elicitation prompt from the terminal.

    python scripts/stdio_probe.py            # prompt for a flavour
    python scripts/stdio_probe.py vanilla    # skip elicitation
"""

import json
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def _send(proc, message):
    proc.stdin.write(json.dumps(message) + "\n")
    proc.stdin.flush()


def _read(proc):
    line = proc.stdout.readline()
    if not line:
        raise RuntimeError("server closed stdout")
    return json.loads(line)


def _answer(ask):
    print(f"❓ {ask['params']['message']}")
    choice = input("flavour (blank to decline, 'x' to cancel): ").strip()
    if choice == "x":
        return {"action": "cancel"}
    if not choice:
        return {"action": "decline"}
    return {"action": "accept", "content": {"flavour": choice}}


def main():
    arguments = {"flavour": sys.argv[1]} if len(sys.argv) > 1 else {}
    proc = subprocess.Popen(
        [sys.executable, str(ROOT / "server.py")],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        text=True,
        bufsize=1,
        cwd=str(ROOT),
    )
    try:
        _send(proc, {"jsonrpc": "2.0", "id": 1, "method": "initialize",
                     "params": {"capabilities": {"elicitation": {}}, "clientInfo": {"name": "stdio-probe"}}})
        print("✅ Initialized:", _read(proc)["result"]["serverInfo"])
        _send(proc, {"jsonrpc": "2.0", "method": "notifications/initialized"})

        _send(proc, {"jsonrpc": "2.0", "id": 2, "method": "tools/call",
                     "params": {"name": "ice_cream_topping_recommender", "arguments": arguments}})
        while True:
            message = _read(proc)
            if message.get("method") == "elicitation/create":
                _send(proc, {"jsonrpc": "2.0", "id": message["id"], "result": _answer(message)})
                continue
            if message.get("id") == 2:
                result = message["result"]
                print(("⚠️ " if result["isError"] else "") + result["content"][0]["text"])
                return 1 if result["isError"] else 0
    finally:
        proc.stdin.close()
        proc.wait(timeout=10)


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any, Dict, Optional


def metrics_payload(midi_out, pump=None) -> Dict[str, Any]:
    return {
        "output": midi_out.get_metrics() if hasattr(midi_out, "get_metrics") else {},
        "pump": pump.get_metrics() if hasattr(pump, "get_metrics") else {},
        "voices": midi_out.allocator.snapshot() if hasattr(midi_out, "allocator") else [],
    }


async def _metrics_task(websocket, midi_out, pump, interval: float):
    while True:
        try:
            payload = {
                "type": "metrics",
                "ts": asyncio.get_running_loop().time(),
                "payload": metrics_payload(midi_out, pump),
            }
            await websocket.send(json.dumps(payload))
            await asyncio.sleep(interval)
        except Exception:
            break


async def _handler(websocket, midi_out, pump, interval: float = 1.0):
    tasks = [asyncio.create_task(_metrics_task(websocket, midi_out, pump, interval))]
    try:
        async for _ in websocket:
            pass
    finally:
        for t in tasks:
            t.cancel()


def start_ws_server(midi_out, pump=None, host: str = "127.0.0.1", port: int = 8765, interval: float = 1.0) -> Optional[threading.Thread]:
    """Start a minimal WS server broadcasting output metrics once per `interval` seconds.

    Requires the 'websockets' package. Returns a daemon thread running the server,
    or None if 'websockets' is unavailable.
    """
    try:
        import websockets  # type: ignore
    except Exception:
        print("[ws] websockets not installed; skipping WS server")
        return None

    def _runner():
        async def _main():
            # Older websockets releases also pass the request path
            async def handler(ws, *_args):
                return await _handler(ws, midi_out, pump, interval)
            async with websockets.serve(handler, host, port):
                print(f"[ws] serving metrics on ws://{host}:{port}")
                await asyncio.Future()

        asyncio.run(_main())

    th = threading.Thread(target=_runner, daemon=True)
    th.start()
    return th

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass
from urllib import request

import websockets


@dataclass
class WatchContext:
    """Runtime context for a watched mission."""

    api_base: str
    ws_url: str
    mission_id: str


def post_json(url: str, payload: dict | None = None) -> dict:
    data = json.dumps(payload or {}).encode("utf-8")
    req = request.Request(
        url=url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with request.urlopen(req, timeout=10) as resp:
        return json.loads(resp.read().decode("utf-8"))


def format_telemetry(message: dict) -> str:
    data = message["data"]
    return (
        f"[TICK] battery={data['battery']:.1f}% "
        f"pos={data['latitude']:.6f},{data['longitude']:.6f} "
        f"alt={data['altitude']:.1f}m"
    )


async def watch(context: WatchContext, ticks: int) -> int:
    received = 0
    async with websockets.connect(context.ws_url) as socket:
        await socket.send(
            json.dumps({"type": "subscribe", "missionId": context.mission_id})
        )
        async for raw in socket:
            message = json.loads(raw)
            if message["type"] == "telemetry":
                print(format_telemetry(message))
                received += 1
                if received >= ticks:
                    break
            elif message["type"] == "error":
                print(f"[ERROR] {message['message']}")
                break
            else:
                print(f"[{message['type'].upper()}] {message}")
    return received


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Start a mission, stream its telemetry and end it",
    )
    parser.add_argument("--api-base", default="http://127.0.0.1:3001/api")
    parser.add_argument("--ws-url", default="ws://127.0.0.1:3001/ws")
    parser.add_argument("--ticks", type=int, default=5)
    parser.add_argument(
        "--keep-running",
        action="store_true",
        help="Do not end the mission after watching",
    )
    args = parser.parse_args()

    created = post_json(f"{args.api_base}/start-mission")
    context = WatchContext(
        api_base=args.api_base,
        ws_url=args.ws_url,
        mission_id=created["mission"]["missionId"],
    )
    print(f"[INFO] mission_id={context.mission_id}")

    received = asyncio.run(watch(context, ticks=args.ticks))
    print(f"[INFO] received {received} telemetry updates")

    if args.keep_running:
        return

    ended = post_json(f"{context.api_base}/missions/{context.mission_id}/end")
    mission = ended["mission"]
    print(
        f"[DONE] mission_id={mission['missionId']} status={mission['status']} "
        f"flight_time={mission['totalFlightTime']}s"
    )
    print(f"Check history: {context.api_base}/missions/{context.mission_id}/telemetry")


if __name__ == "__main__":
    main()

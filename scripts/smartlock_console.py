#!/usr/bin/env python3
"""Interactive terminal tag manager for the smart lock.

Connects with settings from ``SMARTLOCK_*`` environment variables (see
``SmartLockConfig.from_env``), shows the device's tag list and lets the
operator enrol, delete tags and open the door.

Commands::

    list              show connection status and tags
    add               start enrolment, then scan a card on the device
    del <tag-id>      delete a tag (asks for confirmation)
    open              open the door
    refresh           ask the device to republish its tag list
    quit              exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))


def _maybe_reexec_with_project_venv() -> None:
    candidate_env = (_repo / ".venv").resolve()
    candidate_python = candidate_env / "bin" / "python"
    if not candidate_python.exists():
        return

    current_prefix = Path(sys.prefix).resolve()
    if current_prefix == candidate_env:
        return
    if os.environ.get("PYSMARTLOCK_CONSOLE_REEXEC") == "1":
        return

    env = dict(os.environ)
    env["PYSMARTLOCK_CONSOLE_REEXEC"] = "1"
    os.execve(str(candidate_python), [str(candidate_python), *sys.argv], env)


_maybe_reexec_with_project_venv()

from pysmartlock import (  # noqa: E402
    Notice,
    SmartLockClient,
    SmartLockCommandRejectedError,
    SmartLockConfig,
    TagSyncSnapshot,
)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interactive smart-lock RFID tag manager.")
    parser.add_argument(
        "--broker-url",
        default=None,
        help="Broker URL (overrides SMARTLOCK_BROKER_URL).",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=10.0,
        help="Seconds to wait for the initial tag list.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_snapshot(snapshot: TagSyncSnapshot) -> None:
    status = "MQTT Connected" if snapshot.connected else "MQTT Disconnected"
    print(f"[lock] {status}")
    print(f"[lock]   add      : {'Waiting...' if snapshot.adding else 'idle'}")
    if not snapshot.snapshot_received:
        print("[lock]   tags     : (not received yet)")
        return
    print(f"[lock]   tags     : {len(snapshot.tags)}")
    for uid in snapshot.tags:
        marker = "  Deleting..." if snapshot.is_deleting(uid) else ""
        print(f"[lock]     {uid}{marker}")


def _print_notice(notice: Notice) -> None:
    print(f"[lock] ! {notice.message}")


async def _prompt(text: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, text)


async def _confirm_delete(tag_id: str) -> bool:
    answer = await _prompt(f"Delete tag {tag_id}? [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


async def _run(config: SmartLockConfig, wait: float) -> int:
    last_connected: bool | None = None

    def on_state_change(snapshot: TagSyncSnapshot) -> None:
        nonlocal last_connected
        if snapshot.connected != last_connected:
            last_connected = snapshot.connected
            print(f"[lock] {'MQTT Connected' if snapshot.connected else 'MQTT Disconnected'}")

    async with SmartLockClient(
        config,
        on_state_change=on_state_change,
        on_notice=_print_notice,
        confirm_delete=_confirm_delete,
    ) as client:
        snapshot = await client.wait_for_snapshot(timeout=wait)
        if snapshot is None:
            print(f"[lock] No tag list received within {wait:.0f}s")
        else:
            _print_snapshot(snapshot)

        while True:
            try:
                line = (await _prompt("lock> ")).strip()
            except EOFError:
                return 0
            if not line:
                continue
            command, _, argument = line.partition(" ")
            command = command.lower()
            try:
                if command in {"quit", "exit", "q"}:
                    return 0
                if command in {"list", "ls", "status"}:
                    _print_snapshot(client.snapshot())
                elif command == "add":
                    await client.add_tag()
                    print("[lock] Scan a card on the device when it indicates it is waiting.")
                elif command in {"del", "delete", "rm"}:
                    if not argument.strip():
                        print("[lock] usage: del <tag-id>")
                        continue
                    if await client.delete_tag(argument):
                        print(f"[lock] Deleting {argument.strip()}...")
                elif command == "open":
                    await client.open_door()
                    print("[lock] Door open requested")
                elif command == "refresh":
                    await client.refresh_tags()
                else:
                    print(f"[lock] unknown command: {command}")
            except SmartLockCommandRejectedError as exc:
                print(f"[lock] ! {exc}")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"broker_url": args.broker_url} if args.broker_url else {}
    config = SmartLockConfig.from_env(**overrides)
    try:
        return asyncio.run(_run(config, args.wait))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(_main())

"""pushbridge diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import time

from pushbridge.config import PushbridgeSettings
from pushbridge.storage import ChromaStore, ChromaUnavailableError, LocalStorage, MirrorStore


def load_store(settings: PushbridgeSettings) -> ChromaStore:
    try:
        return ChromaStore(settings.chroma_persist_path)
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)


def cmd_mirrors(args: argparse.Namespace) -> None:
    settings = PushbridgeSettings()
    mirror_store = MirrorStore(LocalStorage(settings.storage_path))
    stored = asyncio.run(mirror_store.get_all())
    if not isinstance(stored, list):
        print(f"Mirror store is corrupted: {stored!r}")
        raise SystemExit(1)

    records = asyncio.run(mirror_store.load_records())
    if args.json:
        print(json.dumps([record.to_payload() for record in records], indent=2))
        return

    now = time.time()
    for record in records:
        age = now - record.created_at
        expired = " expired" if age > settings.mirror_max_age else ""
        print(
            f"{record.owner}/{record.mirror_repo} <- {record.source_repo}@{record.branch} "
            f"age={age:.0f}s attempts={record.cleanup_attempts}{expired}"
        )


def cmd_operations(args: argparse.Namespace) -> None:
    settings = PushbridgeSettings()
    store = load_store(settings)
    try:
        operations = store.replay_operations()
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)

    if args.type:
        operations = [op for op in operations if op.get("type") == args.type]
    if args.json:
        print(json.dumps(operations, indent=2))
    else:
        for op in operations:
            error = f" error={op['error']}" if op.get("error") else ""
            print(f"{op['operation_id']} {op.get('type')} [{op['status']}]{error}")


def cmd_alerts(args: argparse.Namespace) -> None:
    settings = PushbridgeSettings()
    store = load_store(settings)
    try:
        alerts = store.search_events(filters={"event_type": "mirror_abandoned"})
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)

    if args.owner:
        alerts = [event for event in alerts if event.metadata.get("owner") == args.owner]

    alerts.sort(key=lambda event: event.timestamp)
    total = len(alerts)
    if args.limit is not None and args.limit > 0:
        alerts = alerts[-args.limit :]

    payload = [
        {
            "event_id": getattr(event, "id", None),
            "mirror_repo": event.metadata.get("mirror_repo"),
            "source_repo": event.metadata.get("source_repo"),
            "owner": event.metadata.get("owner"),
            "attempts": event.metadata.get("attempts"),
            "timestamp": event.timestamp.isoformat(),
        }
        for event in alerts
    ]
    print(json.dumps(payload, indent=2))
    if args.check and total:
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="pushbridge diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_mirrors = sub.add_parser("mirrors", help="List temporary mirrors awaiting cleanup")
    p_mirrors.add_argument("--json", action="store_true", help="Output JSON")
    p_mirrors.set_defaults(func=cmd_mirrors)

    p_operations = sub.add_parser("operations", help="List replayed import/push operations")
    p_operations.add_argument("--type", help="Only show operations of this type (import, push)")
    p_operations.add_argument("--json", action="store_true", help="Output JSON")
    p_operations.set_defaults(func=cmd_operations)

    p_alerts = sub.add_parser(
        "alerts",
        help="List mirrors abandoned after repeated delete failures",
    )
    p_alerts.add_argument("--owner")
    p_alerts.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N alerts",
    )
    p_alerts.add_argument(
        "--check",
        action="store_true",
        help="Exit with status 2 when any abandoned mirror is recorded",
    )
    p_alerts.set_defaults(func=cmd_alerts)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()

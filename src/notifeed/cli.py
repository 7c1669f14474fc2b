"""notifeed CLI: status, list, mark-read, config, poll, watch."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError


def _build(args: argparse.Namespace):
    from notifeed.bootstrap import build_aggregator
    from notifeed.config import Settings
    from notifeed.events.bus import EventBus
    from notifeed.logging_config import configure_logging

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = Path(args.data_dir)
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings = Settings(**overrides)
    configure_logging(log_level=settings.log_level, json_output=settings.json_logs)

    bus = EventBus()
    return build_aggregator(settings, bus), bus


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_status(args: argparse.Namespace) -> None:
    aggregator, _ = _build(args)
    status = aggregator.get_status()
    _print_json(status.model_dump(mode="json", by_alias=True, exclude_none=True))


def cmd_list(args: argparse.Namespace) -> None:
    from notifeed.models.notification import NotificationFilter

    aggregator, _ = _build(args)
    try:
        notification_filter = NotificationFilter(
            sources=args.source or None,
            types=args.type or None,
            keywords=args.keyword or None,
            unread_only=args.unread or None,
        )
    except ValidationError as exc:
        print(f"Invalid filter: {exc}", file=sys.stderr)
        sys.exit(2)

    notifications = aggregator.list_notifications(notification_filter, limit=args.limit)
    if args.json:
        _print_json([n.to_document() for n in notifications])
        return

    if not notifications:
        print("No notifications.")
        return
    for n in notifications:
        marker = " " if n.read else "*"
        print(f"{marker} {n.timestamp.isoformat()}  [{n.source}/{n.type}]  {n.title}")
        print(f"    {n.body}")
        print(f"    id={n.id}")


def cmd_mark_read(args: argparse.Namespace) -> None:
    aggregator, _ = _build(args)
    result = aggregator.mark_read(args.notification_id)
    if not result["success"]:
        print(f"Notification not found: {args.notification_id}", file=sys.stderr)
        sys.exit(1)
    print(f"Marked read: {args.notification_id}")


def cmd_mark_all_read(args: argparse.Namespace) -> None:
    aggregator, _ = _build(args)
    result = aggregator.mark_all_read(args.source)
    print(f"Marked {result['count']} notification(s) read")


def cmd_config(args: argparse.Namespace) -> None:
    aggregator, _ = _build(args)
    if args.action == "show":
        _print_json(aggregator.get_config().to_document())
        return

    slack: dict = {}
    if args.slack_enabled is not None:
        slack["enabled"] = args.slack_enabled
    if args.slack_interval is not None:
        slack["poll_interval_seconds"] = args.slack_interval
    if args.slack_channels is not None:
        slack["channels"] = args.slack_channels
    if args.slack_keywords is not None:
        slack["keywords"] = args.slack_keywords
    for flag in ("watch_mentions", "watch_dms", "watch_threads"):
        value = getattr(args, flag)
        if value is not None:
            slack[flag] = value

    update: dict = {}
    if args.enabled is not None:
        update["enabled"] = args.enabled
    if slack:
        update["slack"] = slack

    try:
        config = aggregator.update_config(update)
    except ValidationError as exc:
        print(f"Invalid config update: {exc}", file=sys.stderr)
        sys.exit(2)
    _print_json(config.to_document())


def cmd_poll(args: argparse.Namespace) -> None:
    aggregator, _ = _build(args)
    notifications = asyncio.run(aggregator.poll_now("slack"))

    error = (aggregator.get_status().errors or {}).get("slack")
    if error:
        print(f"Poll failed: {error}", file=sys.stderr)
        sys.exit(1)
    print(f"Found {len(notifications)} new notification(s)")
    for n in notifications:
        print(f"  [{n.type}] {n.title}: {n.body}")


def cmd_watch(args: argparse.Namespace) -> None:
    from notifeed.bootstrap import run_until_stopped
    from notifeed.events.bus import EVENT_NEW_NOTIFICATION

    aggregator, bus = _build(args)

    def _echo(event_type: str, payload: dict) -> None:
        n = payload["notification"]
        print(f"[{n['source']}/{n['type']}] {n['title']}: {n['body']}", flush=True)

    bus.subscribe(_echo, [EVENT_NEW_NOTIFICATION])

    async def _run() -> dict:
        return await run_until_stopped(aggregator, asyncio.Event())

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        print("Stopped.")
        return
    if not result["success"]:
        print("Watching is disabled. Enable it with: notifeed config set --enabled --slack-enabled", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="notifeed",
        description="Aggregate Slack activity into a local, deduplicated notification feed",
    )
    parser.add_argument("--data-dir", help="Directory for config and cache files (default: ~/.notifeed)")
    parser.add_argument("--log-level", help="debug/info/warning/error (default: info)")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show watcher status")

    # list
    p_list = sub.add_parser("list", help="List cached notifications, newest first")
    p_list.add_argument("--source", action="append", help="Only this source (repeatable)")
    p_list.add_argument("--type", action="append", help="Only this notification type (repeatable)")
    p_list.add_argument("--keyword", action="append", help="Title/body keyword (repeatable, any match)")
    p_list.add_argument("--unread", action="store_true", help="Only unread notifications")
    p_list.add_argument("--limit", type=int, default=100, help="Maximum results (default: 100)")
    p_list.add_argument("--json", action="store_true", help="Print JSON documents")

    # mark-read
    p_read = sub.add_parser("mark-read", help="Mark one notification read")
    p_read.add_argument("notification_id", help="Notification ID")

    # mark-all-read
    p_all = sub.add_parser("mark-all-read", help="Mark every unread notification read")
    p_all.add_argument("--source", choices=["slack", "github"], help="Only this source")

    # config
    p_config = sub.add_parser("config", help="Show or update watcher configuration")
    p_config.add_argument("action", choices=["show", "set"])
    p_config.add_argument("--enabled", action=argparse.BooleanOptionalAction, default=None,
                          help="Master switch for all watchers")
    p_config.add_argument("--slack-enabled", action=argparse.BooleanOptionalAction, default=None)
    p_config.add_argument("--slack-interval", type=int, help="Slack poll interval in seconds")
    p_config.add_argument("--slack-channels", nargs="*", help="Channel IDs to watch (none = all joined)")
    p_config.add_argument("--slack-keywords", nargs="*", help="Only notify on messages with these keywords")
    p_config.add_argument("--watch-mentions", action=argparse.BooleanOptionalAction, default=None)
    p_config.add_argument("--watch-dms", action=argparse.BooleanOptionalAction, default=None)
    p_config.add_argument("--watch-threads", action=argparse.BooleanOptionalAction, default=None)

    # poll
    sub.add_parser("poll", help="Run one Slack poll cycle now")

    # watch
    sub.add_parser("watch", help="Poll on schedule until interrupted")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "status": cmd_status,
        "list": cmd_list,
        "mark-read": cmd_mark_read,
        "mark-all-read": cmd_mark_all_read,
        "config": cmd_config,
        "poll": cmd_poll,
        "watch": cmd_watch,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()

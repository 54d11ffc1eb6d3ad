"""Console commands for the scheduled jobs.

Usage:
    vendorconnect tasks:generate-repeating
    vendorconnect tasks:check-deadlines
    vendorconnect tasks:auto-archive
    vendorconnect notifications:send-scheduled
    vendorconnect notifications:send-emails [--dry-run]
    vendorconnect metrics:calculate-project-baselines

Every command exits 0 on success and 1 on failure.
"""

import argparse
import asyncio
import sys
from argparse import Namespace
from datetime import datetime, timezone

from vendorconnect import jobs
from vendorconnect.config import get_settings
from vendorconnect.email.templates.notification_digest import time_ago
from vendorconnect.exceptions import ConfigurationError
from vendorconnect.logging_setup import job_context, setup_logging


async def generate_repeating(args: Namespace) -> int:
    print("Generating repeating tasks...")
    result = await jobs.generate_repeating_tasks()

    for task in result.created:
        print(f"  Created: {task.title}")
    if result.deactivated:
        print(f"  Deactivated {result.deactivated} ended series")

    print(f"Generated {len(result.created)} repeating tasks.")
    if result.failed:
        print(f"{result.failed} series failed; see the log for details.")
    return 0


async def check_deadlines(args: Namespace) -> int:
    print("Checking task deadlines...")
    result = await jobs.check_task_deadlines()

    print(f"  Due soon: {result.due_soon} task(s)")
    print(f"  Overdue: {result.overdue} task(s)")
    print(f"Processed {result.processed} task deadline notifications.")
    if result.failed:
        print(f"{result.failed} task(s) failed; see the log for details.")
    return 0


async def auto_archive(args: Namespace) -> int:
    result = await jobs.auto_archive_tasks()

    if not result.enabled:
        print("Auto-archive is disabled. Skipping...")
        return 0
    if result.found == 0:
        print("No completed tasks found to archive.")
        return 0

    print(f"Found {result.found} completed tasks to archive.")
    print(f"Successfully archived {result.archived} tasks.")
    if result.errors:
        print("Errors encountered:")
        for error in result.errors:
            print(f"  - {error}")
        return 1

    print("Auto-archive completed successfully.")
    return 0


async def send_scheduled(args: Namespace) -> int:
    print("Starting to send scheduled notifications...")
    result = await jobs.send_scheduled_notifications()
    print(f"Sent {result.sent} scheduled notifications.")
    return 0


async def send_emails(args: Namespace) -> int:
    print("Starting notification email process...")

    if args.dry_run:
        print("DRY RUN MODE - No emails will be sent")
        return await _preview_emails()

    result = await jobs.send_notification_emails()
    if result.emails_sent > 0:
        print(f"Successfully sent {result.emails_sent} notification email(s)")
    else:
        print("No notification emails to send")
    if result.failed:
        print(f"{result.failed} email(s) failed; see the log for details.")
    return 0


async def _preview_emails() -> int:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    previews = await jobs.preview_notification_emails(now=now)

    if not previews:
        print(
            "No users with unread notifications older than "
            f"{settings.digest_grace_minutes} minutes"
        )
        return 0

    print("Users who would receive notification emails:")
    print()
    for preview in previews:
        user = preview.user
        print(f"👤 {user.full_name} ({user.email})")
        print(f"   📧 Would receive email with {preview.unread_count} unread notification(s)")
        for notification in preview.preview:
            print(
                f"   • {notification.title} ({notification.priority}) - "
                f"{time_ago(notification.created_at, now)}"
            )
        if preview.remaining:
            print(f"   ... and {preview.remaining} more")
        print()
    return 0


async def calculate_baselines(args: Namespace) -> int:
    print("Starting project metrics baseline calculation...")
    baselines = await jobs.calculate_project_baselines()

    for baseline in baselines:
        scope = ""
        if baseline.client_id:
            scope = f" client={baseline.client_id}"
        elif baseline.task_type_id:
            scope = f" task_type={baseline.task_type_id}"
        print(
            f"  {baseline.metric_name}{scope}: {baseline.metric_value} "
            f"(from {baseline.sample_size})"
        )

    print("Project metrics baseline calculation completed successfully!")
    print(f"Stored {len(baselines)} baseline metrics.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendorconnect",
        description="VendorConnect scheduled jobs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "tasks:generate-repeating",
        help="Create the next occurrence of every due repeating task",
    ).set_defaults(handler=generate_repeating)
    subparsers.add_parser(
        "tasks:check-deadlines",
        help="Check task deadlines and create notifications",
    ).set_defaults(handler=check_deadlines)
    subparsers.add_parser(
        "tasks:auto-archive",
        help="Archive completed tasks after the configured number of days",
    ).set_defaults(handler=auto_archive)
    subparsers.add_parser(
        "notifications:send-scheduled",
        help="Send scheduled notifications that are due",
    ).set_defaults(handler=send_scheduled)

    send_emails_parser = subparsers.add_parser(
        "notifications:send-emails",
        help="Email a digest of unread notifications",
    )
    send_emails_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be sent without actually sending",
    )
    send_emails_parser.set_defaults(handler=send_emails)

    subparsers.add_parser(
        "metrics:calculate-project-baselines",
        help="Recalculate historical project metrics baselines",
    ).set_defaults(handler=calculate_baselines)

    return parser


async def _run_and_close(args: Namespace) -> int:
    from vendorconnect.db.session import close_db

    try:
        return await args.handler(args)
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().log_level)

    try:
        with job_context(args.command):
            return asyncio.run(_run_and_close(args))
    except ConfigurationError as e:
        print(f"Error: {e.message}")
        return 1
    except Exception as e:
        print(f"Error: {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

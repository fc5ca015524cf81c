"""
CLI tool for inspecting clip and stream jobs in the record store.

Usage:
    python -m app.cli show --job-id 6b84fad3-fd75-41f9-882b-02326ceac184
    python -m app.cli show --record-id 0b6f0b1e-...
    python -m app.cli progress 6b84fad3-fd75-41f9-882b-02326ceac184
    python -m app.cli clips a1b2c3d4e5 --status processing
    python -m app.cli streams --user user-42
"""
import sys
import asyncio
import argparse
from typing import List, Optional

from app.core.config import Settings, get_settings
from app.core.exceptions import ProcessingServiceException
from app.models.domain import JobRecord, JobStatus, Page
from app.api.deps import ServiceContainer, build_services, cleanup_resources


def print_record(record: JobRecord) -> None:
    """Print one record, result and error included."""
    print(f"\n{record.kind.value.capitalize()} {record.record_id}")
    print("=" * 60)
    print(f"  {'job_id':<16}: {record.job_id or 'N/A'}")
    print(f"  {'status':<16}: {record.status.value}")
    print(f"  {'progress':<16}: {record.progress}%")
    print(f"  {'parent_id':<16}: {record.parent_id or 'N/A'}")
    print(f"  {'title':<16}: {record.title or 'N/A'}")
    if record.duration is not None:
        print(f"  {'time range':<16}: {record.start_time}s - {record.end_time}s ({record.duration}s)")
    if record.result_payload:
        print(f"  {'video_url':<16}: {record.result_payload.video_url or 'N/A'}")
        print(f"  {'thumbnail':<16}: {record.result_payload.thumbnail or 'N/A'}")
        print(f"  {'thumbnails':<16}: {len(record.result_payload.thumbnails)}")
        if record.result_payload.stream_url:
            print(f"  {'stream_url':<16}: {record.result_payload.stream_url}")
    if record.error_info:
        print(f"  {'error':<16}: {record.error_info}")
    print(f"  {'revision':<16}: {record.revision}")
    print(f"  {'updated_at':<16}: {record.updated_at or 'N/A'}")


def print_page(page: Page) -> None:
    if not page.items:
        print("No jobs found.")
        return

    print(f"\n{'Record ID':<38} {'Job ID':<38} {'Status':<11} {'Progress':<9} {'Title':<30}")
    print("=" * 130)
    for record in page.items:
        title = (record.title or "")[:30]
        print(
            f"{record.record_id:<38} {(record.job_id or 'N/A'):<38} "
            f"{record.status.value:<11} {record.progress:>7}%  {title:<30}"
        )
    print(f"\nPage {page.page}/{max(page.pages, 1)} - Total: {page.total} job(s)")


async def show_job(services: ServiceContainer, job_id: Optional[str], record_id: Optional[str]) -> int:
    if job_id:
        record = await services.store.get_by_job_id(job_id)
    else:
        record = await services.store.get_by_record_id(record_id)

    if record is None:
        print(f"\nJob not found: {job_id or record_id}")
        return 1
    print_record(record)
    return 0


async def show_progress(services: ServiceContainer, job_id: str) -> int:
    """Same read path as the progress endpoint, so a running job is polled."""
    check = await services.progress.check(job_id)
    print(f"\nProgress for job {job_id} ({check.source}):")
    print("=" * 60)
    for key, value in check.view.to_dict().items():
        print(f"  {key:<16}: {value}")
    return 0


async def list_clips(services: ServiceContainer, stream_id: str, status: Optional[JobStatus], page: int, limit: Optional[int]) -> int:
    print_page(await services.lifecycle.list_for_parent(stream_id, status=status, page=page, limit=limit))
    return 0


async def list_streams(services: ServiceContainer, user_id: Optional[str], status: Optional[JobStatus], page: int, limit: Optional[int]) -> int:
    print_page(await services.lifecycle.list_streams(user_id=user_id, status=status, page=page, limit=limit))
    return 0


async def run(args: argparse.Namespace, settings: Settings) -> int:
    services = await build_services(settings)
    try:
        status = JobStatus(args.status) if getattr(args, "status", None) else None
        if args.command == 'show':
            return await show_job(services, args.job_id, args.record_id)
        if args.command == 'progress':
            return await show_progress(services, args.job_id)
        if args.command == 'clips':
            return await list_clips(services, args.stream_id, status, args.page, args.limit)
        if args.command == 'streams':
            return await list_streams(services, args.user, status, args.page, args.limit)
        return 2
    finally:
        await cleanup_resources(services)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m app.cli",
        description="Inspect clip and stream processing jobs",
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    show_parser = subparsers.add_parser('show', help='Show one stored job')
    target = show_parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--job-id', help='Worker job id')
    target.add_argument('--record-id', help='Record id')

    progress_parser = subparsers.add_parser('progress', help='Fetch live progress (polls the worker while running)')
    progress_parser.add_argument('job_id', help='Worker job id')

    status_choices = [s.value for s in JobStatus]

    clips_parser = subparsers.add_parser('clips', help='List clips of a stream')
    clips_parser.add_argument('stream_id', help='Stream id the clips were cut from')
    clips_parser.add_argument('--status', choices=status_choices)
    clips_parser.add_argument('--page', type=int, default=1)
    clips_parser.add_argument('--limit', type=int, default=None, help='Page size (default: configured page size)')

    streams_parser = subparsers.add_parser('streams', help='List streams')
    streams_parser.add_argument('--user', help='Only streams created by this user')
    streams_parser.add_argument('--status', choices=status_choices)
    streams_parser.add_argument('--page', type=int, default=1)
    streams_parser.add_argument('--limit', type=int, default=None, help='Page size (default: configured page size)')

    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        return asyncio.run(run(args, settings or get_settings()))
    except ProcessingServiceException as e:
        print(f"\nError: {e.message}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

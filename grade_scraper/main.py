"""
Command line entry point for the grade conversion scraper.
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from grade_scraper.adapter import ScraperError
from grade_scraper.config import ScraperConfig, parse_subject_list
from grade_scraper.logger import configure_logging
from grade_scraper.models import ExtractionResult
from grade_scraper.organizer import DataOrganizer
from grade_scraper.resilience.progress_tracker import ProgressTracker
from grade_scraper.scraper_controller import ScraperController

logger = logging.getLogger('grade_scraper.main')

# Global controller for signal handling
_controller: Optional[ScraperController] = None


def signal_handler(signum, frame):
    """Handle SIGINT/SIGTERM for graceful shutdown."""
    print("\n\n" + "=" * 60)
    print("STOP SIGNAL RECEIVED - FINISHING CURRENT UNIT")
    print("=" * 60)
    if _controller:
        _controller.stop()
    else:
        sys.exit(1)


def build_config(args) -> ScraperConfig:
    """Environment configuration with command line overrides applied."""
    config = ScraperConfig.from_env()

    if getattr(args, 'data_dir', None):
        config.data_dir = Path(args.data_dir)
        if not os.getenv('GRADE_SCRAPER_PROGRESS_FILE'):
            config.progress_file = config.data_dir / "progress.json"
    if getattr(args, 'progress_file', None):
        config.progress_file = Path(args.progress_file)
    if getattr(args, 'qualification', None):
        config.qualification_type = args.qualification
    if getattr(args, 'visible', False):
        config.headless = False
    if getattr(args, 'subjects', None) is not None:
        config.subject_filter = parse_subject_list(args.subjects)
    if getattr(args, 'all_subjects', False):
        config.subject_filter = None
    if getattr(args, 'delay', None) is not None:
        config.rate_limit.initial_delay = args.delay
    if getattr(args, 'min_delay', None) is not None:
        config.rate_limit.min_delay = args.min_delay
    if getattr(args, 'cooldown', None) is not None:
        config.rate_limit.cooldown_duration = args.cooldown
    return config


def print_result(result: ExtractionResult, progress: ProgressTracker, config: ScraperConfig):
    summary = progress.summary()

    print("\n" + "=" * 60)
    print("SCRAPING SUMMARY")
    print("=" * 60)
    print(f"Success:            {result.success}")
    print(f"Duration:           {result.duration_seconds / 60:.1f} minutes")
    print(f"Units this run:     {result.total_completed} saved, "
          f"{result.total_failed} failed, {result.total_skipped} skipped")
    print(f"Speed:              {result.units_per_hour:.1f} units/hour")
    print(f"Total Sessions:     {summary['totalSessions']}")
    print(f"Completed Sessions: {summary['completedSessions']}")
    print(f"Total Subjects:     {summary['totalSubjects']}")
    print(f"Total Units:        {summary['totalUnits']}")
    print(f"Completed Units:    {summary['completedUnits']}")
    print(f"Failed Units:       {summary['failedUnits']}")
    print(f"Overall Progress:   {summary['progress']}%")
    print(f"Last Update:        {summary['lastUpdate']}")

    if result.failed_units:
        print(f"\nFailed units ({len(result.failed_units)}):")
        for f in result.failed_units[:10]:
            print(f"  - {f.session} / {f.subject} / {f.unit}: {f.reason[:50]}")
        if len(result.failed_units) > 10:
            print(f"  ... and {len(result.failed_units) - 10} more")

    if result.subject_errors:
        print(f"\nSubject errors ({len(result.subject_errors)}):")
        for e in result.subject_errors:
            where = f"{e['session']} / {e['subject']}" if e['subject'] else e['session']
            print(f"  - {where}: {e['reason'][:50]}")

    if config.subject_filter:
        print(f"\nNote: Only processed subjects matching: {', '.join(config.subject_filter)}")


def run_scrape(args) -> int:
    """Run a full traversal with ScraperController."""
    global _controller

    config = build_config(args)
    _controller = ScraperController(config)

    signal.signal(signal.SIGINT, signal_handler)
    # SIGTERM is not reliably available on Windows
    if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
        signal.signal(signal.SIGTERM, signal_handler)

    try:
        result = _controller.run()
    except ScraperError as e:
        logger.error("Fatal error: %s", e)
        return 1
    finally:
        controller, _controller = _controller, None

    print_result(result, controller.progress, config)
    if result.stopped:
        print("\nStopped. Run again to resume.")
    return 0 if result.success else 1


def run_test_unit(args) -> int:
    """Extract a single unit and print what was found."""
    config = build_config(args)
    controller = ScraperController(config)

    try:
        rows = controller.test_unit(args.session, args.subject, args.unit)
    except ScraperError as e:
        logger.error("Test extraction failed: %s", e)
        return 1

    print(f"\nProcessed {len(rows)} data rows for {args.session} / {args.subject} / {args.unit}")
    if len(rows) <= 2:
        print("WARNING: Only extracted a small amount of data!")
    for row in rows[:args.show]:
        print(f"  RAW {row.raw:>4}  UMS {row.ums:>4}  GRADE {row.grade}")
    if len(rows) > args.show:
        print(f"  ... and {len(rows) - args.show} more")
    return 0 if rows else 1


def run_organize(args) -> int:
    """Build the canonical tree from the raw data tree."""
    config = build_config(args)
    source = Path(args.source) if args.source else config.data_dir
    target = Path(args.target) if args.target else config.processed_dir

    try:
        result = DataOrganizer(source, target).organize()
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1

    print("\n" + "=" * 60)
    print("DATA ORGANIZATION COMPLETE")
    print("=" * 60)
    print(f"Total files processed:            {result.files_processed}")
    print(f"Duplicate files found and handled: {result.duplicates_found}")
    print(f"Files written:                    {result.files_emitted}")
    print(f"Canonical subject folders:        {result.groups}")
    if result.unparseable:
        print(f"Files without a unit code:        {result.unparseable}")
    return 0


def run_status(args) -> int:
    """Print the ledger summary without opening a browser."""
    config = build_config(args)
    progress = ProgressTracker(config.progress_file)
    progress.load()
    summary = progress.summary()

    print(f"Progress ledger: {config.progress_file}")
    for key in ('totalSessions', 'completedSessions', 'totalSubjects',
                'totalUnits', 'completedUnits', 'failedUnits'):
        print(f"  {key:<18} {summary[key]}")
    print(f"  {'progress':<18} {summary['progress']}%")
    print(f"  {'lastUpdate':<18} {summary['lastUpdate']}")
    return 0


def run_clear_failed(args) -> int:
    """Clear failed units so the next scrape attempts them again."""
    config = build_config(args)
    progress = ProgressTracker(config.progress_file)
    progress.load()

    cleared = progress.clear_failed(
        config.qualification_type,
        session=args.session,
        subject=args.subject,
        unit=args.unit,
    )
    progress.save()
    print(f"Cleared {cleared} failed unit(s)")
    return 0


def run_reset(args) -> int:
    """Back up and discard the progress ledger so the next scrape starts over."""
    config = build_config(args)

    if not args.yes:
        response = input(f"\nDiscard all progress in {config.progress_file}? [y/N]: ").strip().lower()
        if response != 'y':
            print("Reset cancelled")
            return 1

    progress = ProgressTracker(config.progress_file)
    progress.reset()
    print(f"Progress ledger reset (backup kept beside {config.progress_file.name})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='grade-scraper',
        description='Grade conversion table scraper and organizer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape everything (resumable, progress is saved after every unit)
  grade-scraper scrape --all-subjects

  # Scrape only some subjects
  grade-scraper scrape --subjects "Physics,Chemistry"

  # Try a single unit with a visible browser
  grade-scraper test-unit "June 2019" "Physics" "WPH01 - Physics on the Go" --visible

  # Merge the raw data into a deduplicated tree
  grade-scraper organize --source data --target processed_data

  # Retry previously failed units of one session
  grade-scraper clear-failed --session "June 2019"

  # Start over from scratch (the old ledger is backed up)
  grade-scraper reset --yes
"""
    )
    parser.add_argument('--log-level', default=os.getenv('GRADE_SCRAPER_LOG_LEVEL', 'INFO'),
                        help='Logging level (default: INFO)')
    parser.add_argument('--log-file', help='Also write logs to this rotating file')
    parser.add_argument('--data-dir', help='Raw data directory (default: data)')
    parser.add_argument('--progress-file', help='Progress ledger path (default: <data-dir>/progress.json)')
    parser.add_argument('--qualification', help='Qualification type to scrape')

    subparsers = parser.add_subparsers(dest='command', required=True)

    scrape = subparsers.add_parser('scrape', help='Scrape all sessions, subjects and units')
    scrape.add_argument('--subjects', help='Comma-separated subject filter terms')
    scrape.add_argument('--all-subjects', action='store_true', help='Disable subject filtering')
    scrape.add_argument('--visible', action='store_true', help='Show the browser window')
    scrape.add_argument('--delay', type=float, help='Initial delay between units in seconds')
    scrape.add_argument('--min-delay', type=float, help='Minimum delay between units in seconds')
    scrape.add_argument('--cooldown', type=float, help='Cooldown in seconds after repeated failures')
    scrape.set_defaults(func=run_scrape)

    test_unit = subparsers.add_parser('test-unit', help='Extract a single unit without saving')
    test_unit.add_argument('session', help='Exam session, e.g. "June 2019"')
    test_unit.add_argument('subject', help='Subject as listed on the site')
    test_unit.add_argument('unit', help='Unit as listed on the site')
    test_unit.add_argument('--visible', action='store_true', help='Show the browser window')
    test_unit.add_argument('--show', type=int, default=10, help='Number of rows to print')
    test_unit.set_defaults(func=run_test_unit)

    organize = subparsers.add_parser('organize', help='Merge raw data into a deduplicated tree')
    organize.add_argument('--source', help='Raw data tree (default: data dir)')
    organize.add_argument('--target', help='Output tree (default: processed_data)')
    organize.set_defaults(func=run_organize)

    status = subparsers.add_parser('status', help='Show the progress ledger summary')
    status.set_defaults(func=run_status)

    clear = subparsers.add_parser('clear-failed', help='Clear failed units so they are retried')
    clear.add_argument('--session', help='Only clear this session')
    clear.add_argument('--subject', help='Only clear this subject')
    clear.add_argument('--unit', help='Only clear this unit')
    clear.set_defaults(func=run_clear_failed)

    reset = subparsers.add_parser('reset', help='Back up and discard the progress ledger')
    reset.add_argument('--yes', action='store_true', help='Do not ask for confirmation')
    reset.set_defaults(func=run_reset)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level.upper(), args.log_file)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())

import asyncio
import sys

from argparse import ArgumentParser

from .common import CrawlerException
from .crawler import ThreadiverseCrawler, launch_crawl

OPTIONS = [
    ("--max-concurrency", int, "MAX_CONCURRENCY", "maximum number of concurrent inspections"),
    ("--min-concurrency", int, "MIN_CONCURRENCY", "number of workers started with the crawl"),
    ("--request-timeout", float, "REQUEST_TIMEOUT", "timeout of one HTTP request (seconds)"),
    ("--task-timeout", float, "TASK_TIMEOUT", "timeout of one instance inspection (seconds)"),
    ("--max-retries", int, "MAX_RETRIES", "retries per instance after a failed attempt"),
    ("--deadline", float, "CRAWL_DEADLINE", "duration of the whole crawl (seconds)"),
    ("--snapshot-interval", float, "SNAPSHOT_INTERVAL", "delay between two snapshots (seconds)"),
    ("--min-active-users", int, "MIN_ACTIVE_USERS", "monthly active users needed to be listed"),
    ("--recency-days", int, "RECENCY_DAYS", "ignore peers not seen during this many days"),
]


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        description="fediscover crawls the threadiverse (Lemmy and PieFed) to build a directory of active instances."
    )
    subparsers = parser.add_subparsers(dest="subcommand")
    subparsers.required = True
    crawl_parser = subparsers.add_parser("crawl")
    crawl_parser.add_argument(
        "--seed",
        action="append",
        dest="seeds",
        help="instance to start from (repeatable, default: %s)"
        % ", ".join(ThreadiverseCrawler.DEFAULT_SEEDS),
    )
    crawl_parser.add_argument(
        "--observer-seeds",
        action="store_true",
        help="also start from the instances listed by fediverse.observer",
    )
    crawl_parser.add_argument(
        "--output-dir",
        default=ThreadiverseCrawler.OUTPUT_DIR,
        help="folder receiving the directory and the log (default: %(default)s)",
    )
    for flag, kind, constant, help_text in OPTIONS:
        default = getattr(ThreadiverseCrawler, constant)
        crawl_parser.add_argument(
            flag, type=kind, default=default, help=f"{help_text} (default: {default})"
        )
    crawl_parser.add_argument(
        "--no-progress", action="store_true", help="hide the progress bar"
    )
    crawl_parser.add_argument(
        "-v", "--verbose", action="store_true", help="print debug logs"
    )
    return parser


def crawl_kwargs(args) -> dict:
    return {
        "seeds": args.seeds,
        "use_observer": args.observer_seeds,
        "output_dir": args.output_dir,
        "max_concurrency": args.max_concurrency,
        "min_concurrency": args.min_concurrency,
        "request_timeout": args.request_timeout,
        "task_timeout": args.task_timeout,
        "max_retries": args.max_retries,
        "deadline": args.deadline,
        "snapshot_interval": args.snapshot_interval,
        "min_active_users": args.min_active_users,
        "recency_days": args.recency_days,
        "verbose": args.verbose,
        "show_progress": not args.no_progress,
    }


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.subcommand == "crawl":
        try:
            crawler = asyncio.run(launch_crawl(**crawl_kwargs(args)))
        except CrawlerException as err:
            print(f"Fatal Error while crawling: {str(err)}")
            sys.exit(1)
        print(
            f"Crawl {crawler.stop_reason.value}: {len(crawler.store)} instances "
            f"listed in {crawler.snapshot_writer.pretty_path}"
        )

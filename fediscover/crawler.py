"Threadiverse crawler: worker pool, retries and time-box"

import asyncio
import enum
import os

from collections import Counter
from typing import List, Optional

from tqdm import tqdm

from .client import ProtocolClient
from .common import (
    SUPPORTED_SOFTWARE,
    CrawlerException,
    RequestError,
    TaskTimeout,
    fetch_fediverse_instance_list,
    setup_logger,
)
from .dispatcher import Dispatcher
from .frontier import Frontier
from .snapshot import SnapshotWriter
from .store import Instance, ResultStore


class CrawlState(enum.Enum):
    INIT = "init"
    RUNNING = "running"
    DRAINED = "drained"
    TIMED_OUT = "timed out"
    TERMINATED = "terminated"


class ThreadiverseCrawler:
    """Crawls Lemmy and PieFed instances by following their federation peers.

    Starting from the seeds, every instance is inspected once by a pool of
    workers. The crawl stops when no instance is left to inspect or when the
    deadline expires, whichever comes first. The directory of qualifying
    instances is written periodically and once more at the end.
    """

    DEFAULT_SEEDS = ["https://lemmy.world", "https://lemmy.zip"]
    MAX_CONCURRENCY: int = 30
    MIN_CONCURRENCY: int = 5
    REQUEST_TIMEOUT: float = 5
    TASK_TIMEOUT: float = 10
    MAX_RETRIES: int = 3
    CRAWL_DEADLINE: float = 20 * 60
    SNAPSHOT_INTERVAL: float = 30
    MIN_ACTIVE_USERS: int = 20
    RECENCY_DAYS: int = 30
    OUTPUT_DIR = "data"
    LOG_FILENAME = "crawl.log"

    def __init__(
        self,
        urls: Optional[List[str]] = None,
        output_dir: Optional[str] = None,
        max_concurrency: Optional[int] = None,
        min_concurrency: Optional[int] = None,
        request_timeout: Optional[float] = None,
        task_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        deadline: Optional[float] = None,
        snapshot_interval: Optional[float] = None,
        min_active_users: Optional[int] = None,
        recency_days: Optional[int] = None,
        client=None,
        verbose: bool = False,
        show_progress: bool = True,
    ):
        def pick(value, default):
            return default if value is None else value

        self.seeds = list(self.DEFAULT_SEEDS if urls is None else urls)
        self.output_dir = pick(output_dir, self.OUTPUT_DIR)
        self.max_concurrency = pick(max_concurrency, self.MAX_CONCURRENCY)
        self.min_concurrency = pick(min_concurrency, self.MIN_CONCURRENCY)
        self.request_timeout = pick(request_timeout, self.REQUEST_TIMEOUT)
        self.task_timeout = pick(task_timeout, self.TASK_TIMEOUT)
        self.max_retries = pick(max_retries, self.MAX_RETRIES)
        self.deadline = pick(deadline, self.CRAWL_DEADLINE)
        self.snapshot_interval = pick(snapshot_interval, self.SNAPSHOT_INTERVAL)
        self.min_active_users = pick(min_active_users, self.MIN_ACTIVE_USERS)
        self.recency_days = pick(recency_days, self.RECENCY_DAYS)
        self.show_progress = show_progress

        if not 1 <= self.min_concurrency <= self.max_concurrency:
            raise CrawlerException(
                "Invalid concurrency: expected 1 <= minimum <= maximum"
            )
        for name in ("request_timeout", "task_timeout", "deadline", "snapshot_interval"):
            if getattr(self, name) <= 0:
                raise CrawlerException(f"Invalid {name}: must be positive")
        if self.max_retries < 0:
            raise CrawlerException("Invalid max_retries: must not be negative")

        self.snapshot_writer = SnapshotWriter(self.output_dir)
        self.logger = setup_logger(
            "fediscover",
            os.path.join(self.output_dir, self.LOG_FILENAME),
            verbose=verbose,
        )

        self._owns_client = client is None
        if client is None:
            client = ProtocolClient(
                request_timeout=self.request_timeout,
                max_connections=self.max_concurrency,
                logger=self.logger,
            )
        self.client = client

        self.frontier = Frontier()
        self.store = ResultStore()
        self.dispatcher = Dispatcher(
            self.client,
            self.frontier,
            self.store,
            min_active_users=self.min_active_users,
            recency_days=self.recency_days,
            logger=self.logger,
        )

        self.state = CrawlState.INIT
        self.stop_reason: Optional[CrawlState] = None
        self.cancelled = asyncio.Event()
        self.outcomes: Counter = Counter()
        self.visited = 0
        self._workers: List[asyncio.Task] = []
        self._idle_workers = 0
        self.peak_workers = 0
        self._progress: Optional[tqdm] = None

    @property
    def results(self) -> List[Instance]:
        return self.store.snapshot()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args, **kwargs):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.close()

    async def launch(self):
        """Launch the crawl"""
        if not self.seeds:
            raise CrawlerException("No URL to crawl")
        if self.state is not CrawlState.INIT:
            raise CrawlerException("A crawler can only be launched once")

        for url in self.seeds:
            await self.frontier.try_enqueue(url)

        self.state = CrawlState.RUNNING
        self.logger.info(
            "Crawl begins with %d seeds (deadline: %ss)...",
            self.frontier.known,
            self.deadline,
        )
        self._progress = tqdm(
            total=self.frontier.known,
            desc="Crawling the threadiverse",
            disable=not self.show_progress,
        )

        for _ in range(self.min_concurrency):
            self._spawn_worker()
        self._grow_pool()
        snapshot_task = asyncio.create_task(self._periodic_snapshot())
        drained = asyncio.create_task(self.frontier.join())

        try:
            done, _pending = await asyncio.wait({drained}, timeout=self.deadline)
            if drained in done:
                self.state = CrawlState.DRAINED
                self.logger.info("Crawl completed!!!")
            else:
                self.state = CrawlState.TIMED_OUT
                self.logger.info("Deadline reached, stopping the crawl...")
            self.stop_reason = self.state
        finally:
            await self._shutdown(drained, snapshot_task)

    async def _shutdown(self, drained: asyncio.Task, snapshot_task: asyncio.Task):
        self.cancelled.set()
        for task in [drained, snapshot_task, *self._workers]:
            task.cancel()
        await asyncio.gather(
            drained, snapshot_task, *self._workers, return_exceptions=True
        )
        self._workers = []

        self.snapshot_writer.write(self.store.snapshot())
        if self._progress is not None:
            self._progress.close()

        self.logger.info(
            "%d instances known, %d inspected, %d qualified",
            self.frontier.known,
            self.visited,
            len(self.store),
        )
        self.logger.debug(
            "Outcomes: %s",
            ", ".join(f"{key}={val}" for key, val in sorted(self.outcomes.items())),
        )
        self.logger.info("Directory written to %s", self.snapshot_writer.pretty_path)
        self.state = CrawlState.TERMINATED

    def _spawn_worker(self):
        self._idle_workers += 1
        self._workers.append(asyncio.create_task(self._worker()))
        self.peak_workers = max(self.peak_workers, len(self._workers))

    def _grow_pool(self):
        while (
            len(self._workers) < self.max_concurrency
            and self.frontier.pending > self._idle_workers
        ):
            self._spawn_worker()

    async def _worker(self):
        while not self.cancelled.is_set():
            address = await self.frontier.dequeue()
            self._idle_workers -= 1
            try:
                self._grow_pool()
                if not self.cancelled.is_set():
                    await self._process(address)
                    self.visited += 1
            finally:
                self._idle_workers += 1
                self.frontier.task_done()
                self._report_progress()
            self._grow_pool()

    async def _process(self, address: str):
        """Inspects an instance, retrying on timeouts and transient errors."""
        self.logger.debug("Start inspecting instance %s", address)
        nb_attempts = self.max_retries + 1
        for attempt in range(1, nb_attempts + 1):
            try:
                outcome = await self._inspect_with_timeout(address)
            except (TaskTimeout, RequestError) as err:
                if isinstance(err, RequestError) and not err.TRANSIENT:
                    self.logger.debug("Dropping instance %s: %s", address, str(err))
                    self.outcomes["error"] += 1
                    return
                self.logger.debug(
                    "Attempt %d/%d on instance %s failed: %s",
                    attempt,
                    nb_attempts,
                    address,
                    str(err),
                )
                continue
            except Exception as err:
                self.logger.error(
                    "Unexpected error with instance %s: %s", address, repr(err)
                )
                self.outcomes["error"] += 1
                return

            self.outcomes[outcome.value] += 1
            self.logger.debug(
                "Finished inspecting instance %s (%s)", address, outcome.value
            )
            return

        self.outcomes["gave up"] += 1
        self.logger.warning(
            "Giving up on instance %s after %d attempts", address, nb_attempts
        )

    async def _inspect_with_timeout(self, address: str):
        try:
            return await asyncio.wait_for(
                self.dispatcher.inspect_instance(address), self.task_timeout
            )
        except asyncio.TimeoutError as err:
            raise TaskTimeout(address, self.task_timeout) from err

    async def _periodic_snapshot(self):
        while True:
            await asyncio.sleep(self.snapshot_interval)
            self.snapshot_writer.write(self.store.snapshot())
            self.logger.debug("Snapshot written (%d instances)", len(self.store))

    def _report_progress(self):
        if self._progress is None:
            return
        self._progress.total = self.frontier.known
        self._progress.set_postfix(qualified=len(self.store), refresh=False)
        self._progress.update(1)


async def launch_crawl(
    seeds: Optional[List[str]] = None, use_observer: bool = False, **kwargs
) -> ThreadiverseCrawler:
    """Runs a full crawl and returns the terminated crawler."""
    urls = list(ThreadiverseCrawler.DEFAULT_SEEDS if seeds is None else seeds)
    if use_observer:
        for software in SUPPORTED_SOFTWARE:
            urls += await fetch_fediverse_instance_list(software)

    async with ThreadiverseCrawler(urls, **kwargs) as crawler:
        await crawler.launch()
    return crawler

"""Coalescing poll loop for "wait until a torrent reaches a state" requests."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from transrpc.core.config import settings
from transrpc.core.exceptions import ValidationError, WaitTimeoutError
from transrpc.models.schemas import TorrentStatus

logger = logging.getLogger(__name__)

Snapshot = dict[str, Any]
FetchTorrents = Callable[[list[int]], Awaitable[list[Snapshot]]]
JobKey = tuple[int, TorrentStatus]


class Clock(Protocol):
    """Time source and timer used by the poll loop."""

    def time(self) -> float: ...

    async def sleep(self, delay: float) -> None: ...


class AsyncioClock:
    """Clock backed by the running event loop."""

    def time(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


@dataclass
class Waiter:
    """One caller blocked on a poll job."""

    future: asyncio.Future
    deadline: Optional[float] = None
    timeout: Optional[float] = None


@dataclass
class PollJob:
    """Pending registration for one (torrent id, desired state) pair."""

    torrent_id: int
    desired_state: TorrentStatus
    waiters: list[Waiter] = field(default_factory=list)

    @property
    def key(self) -> JobKey:
        return (self.torrent_id, self.desired_state)

    def matches(self, torrent: Snapshot) -> bool:
        """Whether a snapshot shows this job's torrent in the desired state."""
        return (
            torrent.get("id") == self.torrent_id
            and torrent.get("status") == self.desired_state
        )

    def resolve(self, torrent: Snapshot) -> None:
        for waiter in self.waiters:
            if not waiter.future.done():
                waiter.future.set_result(torrent)

    def fail(self, error: BaseException) -> None:
        for waiter in self.waiters:
            if not waiter.future.done():
                waiter.future.set_exception(error)


class PollEngine:
    """
    Single poll loop shared by every ``wait()`` caller.

    Registrations are keyed by ``(torrent_id, desired_state)``; repeated
    registrations append a waiter to the existing job. While any job is
    pending one task fetches the distinct ids every ``interval`` seconds,
    resolves the jobs whose torrent reached its state and exits once the
    queue is empty.
    """

    def __init__(
        self,
        fetch: FetchTorrents,
        interval: Optional[float] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize poll engine."""
        self.fetch = fetch
        self.interval = interval if interval is not None else settings.poll.interval
        self.clock: Clock = clock or AsyncioClock()
        self.jobs: dict[JobKey, PollJob] = {}
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def polling(self) -> bool:
        """Whether a poll loop is active."""
        return self._task is not None

    def register(
        self,
        torrent_id: int,
        desired_state: TorrentStatus | int,
        timeout: Optional[float] = None,
    ) -> asyncio.Future:
        """
        Queue a waiter and start the poll loop if it is idle.

        Never suspends, so it is safe to call while a tick is in flight.

        Args:
            torrent_id: Torrent to watch
            desired_state: Status to wait for
            timeout: Optional deadline in seconds, checked at each tick

        Returns:
            Future resolved with the torrent snapshot
        """
        try:
            state = TorrentStatus(desired_state)
        except ValueError as e:
            raise ValidationError(f"Unknown torrent status: {desired_state!r}") from e

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else self.clock.time() + timeout
        waiter = Waiter(future=loop.create_future(), deadline=deadline, timeout=timeout)

        key = (torrent_id, state)
        job = self.jobs.get(key)
        if job is None:
            job = self.jobs[key] = PollJob(torrent_id=torrent_id, desired_state=state)
            logger.info(f"Added torrent {torrent_id} to poll jobs (waiting for {state.name})")
        job.waiters.append(waiter)
        logger.debug(f"Poll jobs: {', '.join(str(j.torrent_id) for j in self.jobs.values())}")

        if self._task is None:
            self._task = loop.create_task(self._run())

        return waiter.future

    async def wait(
        self,
        torrent_id: int,
        desired_state: TorrentStatus | int,
        timeout: Optional[float] = None,
    ) -> Snapshot:
        """Wait until the torrent reports the desired status and return its snapshot."""
        return await self.register(torrent_id, desired_state, timeout)

    async def _run(self) -> None:
        """Poll until no jobs remain."""
        logger.debug("Polling started")
        try:
            while True:
                await self._tick()
                if not self.jobs:
                    break
                await self.clock.sleep(self.interval)
        except Exception as e:
            logger.exception(f"Poll loop error: {e}")
            for job in self.jobs.values():
                job.fail(e)
            self.jobs.clear()
        finally:
            if self._task is asyncio.current_task():
                self._task = None
            logger.debug("Polling stopped")

    def _prune(self) -> None:
        """Drop cancelled waiters, fail expired ones, drop jobs left without waiters."""
        now = self.clock.time()
        for job in list(self.jobs.values()):
            live = []
            for waiter in job.waiters:
                if waiter.future.done():
                    continue
                if waiter.deadline is not None and now >= waiter.deadline:
                    waiter.future.set_exception(
                        WaitTimeoutError(job.torrent_id, job.desired_state, waiter.timeout)
                    )
                    continue
                live.append(waiter)

            job.waiters = live
            if not live:
                logger.info(f"Dropped poll job for torrent {job.torrent_id}: no waiters left")
                del self.jobs[job.key]

    def _discard(self, job: PollJob) -> None:
        if self.jobs.get(job.key) is job:
            del self.jobs[job.key]

    async def _tick(self) -> None:
        """Fetch every watched torrent once and settle the jobs it satisfies."""
        self.tick_count += 1
        self._prune()
        if not self.jobs:
            return

        jobs = list(self.jobs.values())
        ids = list(dict.fromkeys(job.torrent_id for job in jobs))
        logger.debug(f"Poll with ids: {ids}")

        try:
            torrents = await self.fetch(ids)
        except Exception as e:
            logger.error(f"Poll fetch failed for ids {ids}: {e}")
            for job in jobs:
                self._discard(job)
            for job in jobs:
                job.fail(e)
            return

        satisfied = []
        for job in jobs:
            torrent = next((t for t in torrents if job.matches(t)), None)
            if torrent is not None:
                satisfied.append((job, torrent))

        for job, _ in satisfied:
            self._discard(job)
        for job, torrent in satisfied:
            logger.info(f"Torrent {job.torrent_id} reached {job.desired_state.name}")
            job.resolve(torrent)

    async def close(self) -> None:
        """Stop the poll loop and cancel every pending waiter."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        for job in self.jobs.values():
            for waiter in job.waiters:
                waiter.future.cancel()
        self.jobs.clear()
        logger.debug("Poll engine closed")

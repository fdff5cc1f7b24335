"""Request dispatcher with bounded async concurrency."""

import asyncio
import contextlib
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

import structlog

from .config import RunSettings, settings
from .core import FailureReporter, HttpClient, HttpFetcher, RequestSpec, ResultSink
from .errors import MalformedPayload, TransportError
from .extract import Extractor
from .frontier import DONE, FAILED, PENDING, Attempt, RequestQueue
from .output import DatasetSink, FailureLog, LoggingFailureReporter

log = structlog.get_logger(__name__)

RetryDelay = Callable[[int], float]


def no_delay(attempt_number: int) -> float:
    return 0.0


def exponential_backoff(base: float = 0.5, cap: float = 30.0) -> RetryDelay:
    """Delay of base * 2**attempt_number seconds, capped."""
    def delay(attempt_number: int) -> float:
        return min(cap, base * (2 ** attempt_number))
    return delay


@dataclass
class RunSummary:
    """Outcome counts for one run."""
    delivered: int = 0
    failed: int = 0
    sink_errors: int = 0
    attempts: int = 0
    skipped: int = 0
    untried: int = 0
    cancelled: bool = False
    elapsed: float = 0.0

    @property
    def completed(self) -> int:
        return self.delivered + self.failed + self.sink_errors


class Dispatcher:
    """Runs a bounded batch of requests to completion.

    Each request is sent at most max_retries + 1 times. Transport errors and
    timeouts are retried; a response whose body cannot be extracted fails
    immediately. Every admitted request ends in exactly one call to either
    sink.store or reporter.notify. Cancelling a run leaves only requests that
    were never attempted without an outcome.
    """

    def __init__(
        self,
        client: HttpClient,
        sink: ResultSink,
        reporter: FailureReporter | None = None,
        extractor: Extractor | None = None,
        config: RunSettings | None = None,
        retry_delay: RetryDelay = no_delay,
    ):
        self.client = client
        self.sink = sink
        self.reporter = reporter or LoggingFailureReporter()
        self.config = config or settings
        self.extractor = extractor or Extractor(self.config.items_path)
        self.retry_delay = retry_delay

        self.in_flight = 0
        self.max_in_flight = 0
        self._queue: RequestQueue | None = None

    def cancel(self):
        """Stop starting new attempts; in-flight ones are allowed to finish."""
        if self._queue is not None:
            log.info("run_cancelled", pending=self._queue.pending_count())
            self._queue.cancel()

    async def run(self, specs: Iterable[RequestSpec]) -> RunSummary:
        """Process specs until all are terminal, or the run is cancelled."""
        queue = RequestQueue(
            max_retries=self.config.max_retries,
            max_requests=self.config.max_requests_per_run,
        )
        queue.add_many(specs)
        summary = RunSummary(skipped=queue.skipped)
        concurrency = min(self.config.max_concurrency, len(queue))

        log.info("run_started", requests=len(queue), skipped=queue.skipped, concurrency=concurrency)
        start_time = time.time()
        self._queue = queue
        try:
            workers = [
                asyncio.create_task(self._worker(queue, summary))
                for _ in range(concurrency)
            ]
            await asyncio.gather(*workers)
            stats = queue.stats()
            summary.attempts = queue.total_attempts()
            summary.untried = stats.get(PENDING, 0)
            summary.cancelled = queue.cancelled
        finally:
            self._queue = None
            queue.close()

        summary.elapsed = time.time() - start_time
        log.info(
            "run_finished",
            delivered=summary.delivered,
            failed=summary.failed,
            sink_errors=summary.sink_errors,
            attempts=summary.attempts,
            cancelled=summary.cancelled,
            untried=summary.untried,
            elapsed=round(summary.elapsed, 3),
        )
        return summary

    async def _worker(self, queue: RequestQueue, summary: RunSummary):
        """Worker coroutine that processes requests from the queue."""
        while True:
            attempt = await queue.take_next()
            if attempt is None:
                break
            await self._process(queue, summary, attempt)

    async def _send(self, spec: RequestSpec):
        timeout = self.config.request_timeout
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            return await asyncio.wait_for(self.client.send(spec, timeout), timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"timeout after {timeout}s", cause=e) from e
        except TransportError:
            raise
        except Exception as e:
            # Unknown client error: use retry logic
            raise TransportError(f"{type(e).__name__}: {e}", cause=e) from e
        finally:
            self.in_flight -= 1

    async def _process(self, queue: RequestQueue, summary: RunSummary, attempt: Attempt):
        """Send one attempt and route its outcome."""
        spec = attempt.spec
        log.debug("request_started", url=spec.url, method=spec.method, attempt=attempt.attempt_number)

        try:
            response = await self._send(spec)
        except TransportError as e:
            await self._retry_or_fail(queue, summary, attempt, e)
            return

        try:
            result = self.extractor.extract(response.content, spec.url)
        except Exception as e:
            log.exception("extract_failed", url=spec.url)
            result = MalformedPayload(f"extraction failed: {type(e).__name__}: {e}", self.extractor.path)
        if isinstance(result, MalformedPayload):
            if await queue.mark_terminal(spec.url, FAILED, str(result)):
                summary.failed += 1
                self._report(spec, result)
            return

        if not await queue.mark_terminal(spec.url, DONE):
            return
        try:
            self.sink.store(result)
        except Exception as e:
            # Already fetched correctly: never retried against the network
            summary.sink_errors += 1
            log.error("sink_failed", url=spec.url, error=str(e))
            return
        summary.delivered += 1
        log.debug("record_stored", url=spec.url, status=response.status)

    async def _retry_or_fail(
        self,
        queue: RequestQueue,
        summary: RunSummary,
        attempt: Attempt,
        error: TransportError,
    ):
        spec = attempt.spec
        log.info("attempt_failed", url=spec.url, attempt=attempt.attempt_number, error=str(error))

        # A tried request never goes back to a cancelled run's queue
        if not queue.cancelled and attempt.attempt_number < self.config.max_retries:
            delay = self.retry_delay(attempt.attempt_number)
            if delay > 0:
                await queue.wait_cancelled(delay)
            if not queue.cancelled and await queue.requeue(spec.url, str(error)):
                return

        if await queue.mark_terminal(spec.url, FAILED, str(error)):
            summary.failed += 1
            self._report(spec, error)

    def _report(self, spec: RequestSpec, reason: TransportError | MalformedPayload):
        try:
            self.reporter.notify(spec, reason)
        except Exception:
            log.exception("reporter_failed", url=spec.url)


async def run_requests(
    specs: Iterable[RequestSpec],
    config: RunSettings | None = None,
    output_dir: str | Path | None = None,
    retry_delay: RetryDelay = no_delay,
) -> RunSummary:
    """Run specs over HTTP, writing records and failures as JSONL."""
    config = config or settings
    output_dir = Path(output_dir or config.output_dir)

    fetcher = HttpFetcher(
        timeout=config.request_timeout,
        user_agent=config.user_agent,
        max_connections=config.max_connections,
        max_keepalive_connections=config.max_keepalive_connections,
    )
    async with fetcher:
        with DatasetSink(output_dir / "records.jsonl") as sink, \
                FailureLog(output_dir / "failures.jsonl") as failures:
            dispatcher = Dispatcher(
                client=fetcher,
                sink=sink,
                reporter=failures,
                config=config,
                retry_delay=retry_delay,
            )
            loop = asyncio.get_running_loop()
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGINT, dispatcher.cancel)
            try:
                return await dispatcher.run(specs)
            finally:
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(signal.SIGINT)

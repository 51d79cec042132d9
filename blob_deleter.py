#!/usr/bin/env python3
"""
Azure Blob Deleter - Bulk-delete the blobs of an Azure Storage container.

Lists every blob in a container (optionally only those under a name prefix)
and deletes them with a fixed number of concurrent workers. Requests are
authenticated with Shared Key signing or with a pre-issued SAS token. Whole
list-then-delete passes can be repeated to pick up blobs that were created
while the previous pass was running.

License: MIT
"""

from __future__ import annotations

import argparse
import base64
import hashlib
import hmac
import logging
import os
import signal
import sys
import threading
import time
import xml.etree.ElementTree as ElementTree
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from email.utils import formatdate
from threading import Event, Lock
from typing import Iterator, Mapping
from urllib.parse import quote

import psutil
import requests
from dotenv import load_dotenv
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)

VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "verbose": VERBOSE,
    "debug": logging.DEBUG,
    "silly": logging.DEBUG,
}

API_VERSION = "2017-07-29"
BUFFER_CAPACITY = 50000
DEFAULT_CONCURRENCY = 100
MODES = ("test", "delete")
ERROR_POLICIES = ("halt", "continue")


# === Errors ===


class DeleterError(Exception):
    """Base class for every error that aborts a run."""


class ConfigurationError(DeleterError):
    """Required settings are missing or invalid."""


class SigningError(DeleterError):
    """The Shared Key signature could not be computed."""


class TransportError(DeleterError):
    """The storage service could not be reached."""


class ServiceError(DeleterError):
    """The storage service answered with a non-2xx status or an unreadable body."""

    def __init__(
        self, message: str, status_code: int | None = None, reason: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


# === Configuration ===


def _setting(cli_value, environ: Mapping[str, str], name: str, default=None):
    """Return the CLI value if given, else the environment value, else default."""
    if cli_value is not None and cli_value != "":
        return cli_value
    value = environ.get(name)
    if value is None or value == "":
        return default
    return value


def _int_setting(value, default: int, minimum: int = 0) -> int:
    """Parse an integer setting; unparsable or too-small values give default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= minimum else default


def _float_setting(value) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class DeleterConfig:
    """Configuration settings for a delete run."""

    account: str | None
    container: str | None
    key: str | None = None
    sas: str | None = None
    prefix: str | None = None
    mode: str = "test"
    concurrency: int = DEFAULT_CONCURRENCY
    on_error: str = "halt"
    retries: int = 0
    log_level: str = "info"
    request_timeout: float | None = None
    buffer_capacity: int = BUFFER_CAPACITY
    backpressure_delay: float = 1.0
    idle_delay: float = 1.0
    progress_interval: float = 1.0

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account}.blob.core.windows.net"

    @classmethod
    def from_sources(
        cls, args: argparse.Namespace, environ: Mapping[str, str]
    ) -> DeleterConfig:
        """
        Merge command line arguments over environment variables.

        Numeric settings that cannot be parsed or are out of range fall back
        to their defaults.
        The result is not validated; call validate() before using it.

        Args:
            args: Namespace produced by parse_arguments().
            environ: Environment mapping, usually os.environ.

        Returns:
            The merged configuration.
        """
        return cls(
            account=_setting(args.account, environ, "STORAGE_ACCOUNT"),
            container=_setting(args.container, environ, "STORAGE_CONTAINER"),
            key=_setting(args.key, environ, "STORAGE_KEY"),
            sas=_setting(args.sas, environ, "STORAGE_SAS"),
            prefix=_setting(args.prefix, environ, "PREFIX"),
            mode=str(_setting(args.mode, environ, "MODE", "test")).lower(),
            concurrency=_int_setting(
                _setting(args.concurrency, environ, "CONCURRENCY"),
                DEFAULT_CONCURRENCY,
                minimum=1,
            ),
            on_error=str(_setting(args.on_error, environ, "ON_ERROR", "halt")).lower(),
            retries=_int_setting(_setting(args.retries, environ, "RETRIES"), 0),
            log_level=str(_setting(args.log_level, environ, "LOG_LEVEL", "info")).lower(),
            request_timeout=_float_setting(
                _setting(args.timeout, environ, "REQUEST_TIMEOUT")
            ),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if the settings cannot start a run."""
        if not self.account:
            raise ConfigurationError(
                "You must specify STORAGE_ACCOUNT in either .env or command line."
            )
        if not self.container:
            raise ConfigurationError(
                "You must specify STORAGE_CONTAINER in either .env or command line."
            )
        if not self.key and not self.sas:
            raise ConfigurationError(
                "You must specify either STORAGE_KEY or STORAGE_SAS in either .env or command line."
            )
        if self.mode not in MODES:
            raise ConfigurationError(f'MODE must be "test" or "delete", not "{self.mode}".')
        if self.on_error not in ERROR_POLICIES:
            raise ConfigurationError(
                f'ON_ERROR must be "halt" or "continue", not "{self.on_error}".'
            )
        if self.concurrency < 1:
            raise ConfigurationError("CONCURRENCY must be at least 1.")
        if self.retries < 0:
            raise ConfigurationError("RETRIES cannot be negative.")
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f'LOG_LEVEL "{self.log_level}" is not recognized.')

    def log_settings(self) -> None:
        logger.info(f'STORAGE_ACCOUNT = "{self.account}".')
        logger.info(f'STORAGE_CONTAINER = "{self.container}".')
        logger.info(f"STORAGE_KEY is {'defined' if self.key else 'undefined'}.")
        logger.info(f"STORAGE_SAS is {'defined' if self.sas else 'undefined'}.")
        if self.prefix:
            logger.info(f'PREFIX = "{self.prefix}".')
        logger.info(f'MODE = "{self.mode}".')
        logger.info(f'CONCURRENCY = "{self.concurrency}".')
        logger.info(f'ON_ERROR = "{self.on_error}".')
        logger.info(f'RETRIES = "{self.retries}".')
        if self.request_timeout is not None:
            logger.info(f'REQUEST_TIMEOUT = "{self.request_timeout}".')


# === Shared Key signing ===


def build_string_to_sign(
    method: str,
    account: str,
    path: str,
    headers: Mapping[str, str],
    query: Mapping[str, str] | None = None,
    body: bytes | str | None = None,
) -> str:
    """
    Build the canonical string that Shared Key authentication signs.

    Args:
        method: HTTP method, e.g. "GET".
        account: Storage account name.
        path: URL path of the request, "/container" or "/container/blob".
        headers: Request headers; keys are matched case-insensitively.
        query: Query parameters of the request.
        body: Request body, or None when the request has none.

    Returns:
        The newline-delimited string to sign.
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    ms_headers = sorted(
        f"{key}:{value}" for key, value in lowered.items() if key.startswith("x-ms-")
    )
    parameters = sorted(f"{key}:{value}" for key, value in (query or {}).items())

    # a missing body is an empty string, not 0
    if body is None:
        length = ""
    elif isinstance(body, str):
        length = str(len(body.encode("utf-8")))
    else:
        length = str(len(body))

    lines = [
        method.upper(),
        "",  # Content-Encoding
        "",  # Content-Language
        length,
        "",  # Content-MD5
        lowered.get("content-type", ""),
        "",  # Date
        "",  # If-Modified-Since
        "",  # If-Match
        lowered.get("if-none-match", ""),
        "",  # If-Unmodified-Since
        "",  # Range
    ]
    lines.extend(ms_headers)
    lines.append(f"/{account}{path}")
    lines.extend(parameters)
    return "\n".join(lines)


def sign_request(
    account: str,
    account_key: str,
    method: str,
    path: str,
    headers: Mapping[str, str],
    query: Mapping[str, str] | None = None,
    body: bytes | str | None = None,
) -> str:
    """
    Compute the Authorization header value for a request.

    Returns:
        "SharedKey <account>:<signature>".

    Raises:
        SigningError: If the account key is not valid base64.
    """
    string_to_sign = build_string_to_sign(method, account, path, headers, query, body)
    escaped = string_to_sign.replace("\n", "\\n")
    logger.debug(f'The unencoded signature is "{escaped}"')
    try:
        decoded_key = base64.b64decode(account_key, validate=True)
    except (TypeError, ValueError) as e:
        raise SigningError(f"STORAGE_KEY is not a valid base64 key: {e}") from e
    digest = hmac.new(
        decoded_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).digest()
    signature = base64.b64encode(digest).decode("ascii")
    return f"SharedKey {account}:{signature}"


# === Storage service client ===


@dataclass
class BlobPage:
    """One page of a container listing."""

    names: list[str]
    next_marker: str | None = None


class BlobStorageClient:
    """
    Minimal Blob service REST client for listing and deleting blobs.

    Attributes:
        config: Run configuration (account, container, credentials).
    """

    def __init__(self, config: DeleterConfig) -> None:
        self.config = config
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        """Lazily create a keep-alive session sized for the worker pool."""
        if self._session is None:
            pool_size = self.config.concurrency + 50
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session = requests.Session()
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            self._session = session
        return self._session

    def _send(
        self,
        method: str,
        path: str,
        description: str,
        query: Mapping[str, str] | None = None,
        extra_headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        """
        Sign and send one request.

        Raises:
            TransportError: The request never got a response.
            ServiceError: The response status was not 2xx.
        """
        query = dict(query or {})
        headers = {
            "x-ms-version": API_VERSION,
            "x-ms-date": formatdate(usegmt=True),
        }
        headers.update(extra_headers or {})

        url = f"{self.config.endpoint_url}{path}"
        if self.config.sas:
            url = f"{url}?{self.config.sas.lstrip('?')}"
        else:
            headers["Authorization"] = sign_request(
                self.config.account, self.config.key, method, path, headers, query
            )

        try:
            response = self.session.request(
                method,
                url,
                params=query,
                headers=headers,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"failed to {description}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ServiceError(
                f"failed to {description}: {response.status_code}: {response.reason}",
                status_code=response.status_code,
                reason=response.reason,
            )
        return response

    def list_blobs_page(self, marker: str | None = None) -> BlobPage:
        """
        Fetch one page (up to 5,000 names) of the container listing.

        Args:
            marker: Continuation marker from the previous page, if any.

        Returns:
            The names on the page and the marker for the next one.
        """
        prefix = self.config.prefix
        query = {"restype": "container", "comp": "list"}
        if prefix:
            query["prefix"] = prefix
            logger.debug(f'getting another batch of blobs prefixed by "{prefix}"...')
        else:
            logger.debug("getting another batch of blobs...")
        if marker:
            query["marker"] = marker

        response = self._send(
            "GET",
            f"/{self.config.container}",
            f'list blobs (prefix: "{prefix or ""}")',
            query=query,
        )
        return self.parse_listing(response.content)

    @staticmethod
    def parse_listing(body: bytes) -> BlobPage:
        """Extract blob names and the next marker from a List Blobs response."""
        try:
            root = ElementTree.fromstring(body)
        except ElementTree.ParseError as e:
            raise ServiceError(f"failed to parse the blob listing: {e}") from e
        if root.tag != "EnumerationResults":
            raise ServiceError(f"unexpected listing document <{root.tag}>")

        names = [blob.findtext("Name", default="") for blob in root.findall("./Blobs/Blob")]
        next_marker = root.findtext("NextMarker") or None
        return BlobPage(names=names, next_marker=next_marker)

    def delete_blob(self, name: str) -> None:
        """Delete one blob together with its snapshots."""
        logger.debug(f'starting delete of "{name}"...')
        self._send(
            "DELETE",
            f"/{self.config.container}/{quote(name, safe='/')}",
            f'delete "{name}"',
            extra_headers={"x-ms-delete-snapshots": "include"},
        )
        logger.debug(f'deleted "{name}".')


# === Pipeline ===


class PendingBuffer:
    """Blob names waiting to be deleted; pops the most recently pushed first."""

    def __init__(self, capacity: int = BUFFER_CAPACITY) -> None:
        self.capacity = capacity
        self._names: list[str] = []
        self._lock = Lock()

    def push(self, name: str) -> None:
        """Thread-safe push of one name."""
        with self._lock:
            self._names.append(name)

    def push_many(self, names: list[str]) -> None:
        """Thread-safe push of a page of names."""
        with self._lock:
            self._names.extend(names)

    def pop_one(self) -> str | None:
        """Pop the most recent name, or None when the buffer is empty."""
        with self._lock:
            return self._names.pop() if self._names else None

    def size(self) -> int:
        """Number of names waiting."""
        with self._lock:
            return len(self._names)

    def __len__(self) -> int:
        return self.size()

    def is_over_capacity(self) -> bool:
        """True when the producer should pause listing."""
        return self.size() > self.capacity

    def clear(self) -> None:
        """Drop every waiting name."""
        with self._lock:
            self._names.clear()


@dataclass
class RunStatistics:
    """Counters for one list-then-delete cycle."""

    start_time: float = field(default_factory=time.time)
    deleted_count: int = 0
    failed_count: int = 0
    retry_index: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def reset(self, retry_index: int = 0) -> None:
        """Reset all counters and restart the clock for a new cycle."""
        with self._lock:
            self.start_time = time.time()
            self.deleted_count = 0
            self.failed_count = 0
            self.retry_index = retry_index

    def increment_deleted(self) -> None:
        """Thread-safe increment of deleted count."""
        with self._lock:
            self.deleted_count += 1

    def increment_failed(self) -> None:
        """Thread-safe increment of failed count."""
        with self._lock:
            self.failed_count += 1

    def elapsed(self) -> float:
        """Seconds since the current cycle started."""
        with self._lock:
            return max(time.time() - self.start_time, 0.0)

    def snapshot(self) -> RunStatistics:
        """Return an independent copy of the current counters."""
        with self._lock:
            return RunStatistics(
                start_time=self.start_time,
                deleted_count=self.deleted_count,
                failed_count=self.failed_count,
                retry_index=self.retry_index,
            )


class ListingProducer:
    """
    Pages through the container listing and feeds the pending buffer.

    The listing is paused while the buffer holds more than its capacity;
    the buffer is polled again every backpressure_delay seconds.
    """

    def __init__(
        self,
        client: BlobStorageClient,
        buffer: PendingBuffer,
        backpressure_delay: float = 1.0,
    ) -> None:
        self.client = client
        self.buffer = buffer
        self.backpressure_delay = backpressure_delay
        self.done = Event()

    def iter_pages(self) -> Iterator[BlobPage]:
        marker = None
        while True:
            page = self.client.list_blobs_page(marker)
            yield page
            if not page.next_marker:
                return
            marker = page.next_marker

    def iter_names(self) -> Iterator[str]:
        for page in self.iter_pages():
            yield from page.names

    def run(self, abort: Event) -> int:
        """
        List the whole container into the buffer, then set the done event.

        Any listing failure sets the abort event so the workers stop, then
        propagates.

        Args:
            abort: Event shared with the worker pool.

        Returns:
            Number of names pushed.
        """
        pushed = 0
        marker = None
        try:
            while not abort.is_set():
                if self.buffer.is_over_capacity():
                    logger.log(VERBOSE, "waiting for the buffer to empty some...")
                    abort.wait(self.backpressure_delay)
                    continue

                page = self.client.list_blobs_page(marker)
                for name in page.names:
                    logger.debug(f'"{name}" identified for deletion.')
                self.buffer.push_many(page.names)
                pushed += len(page.names)

                if not page.next_marker:
                    logger.debug("all blobs were fetched.")
                    self.done.set()
                    break
                logger.debug("there are more blobs to fetch.")
                marker = page.next_marker
        except Exception:
            abort.set()
            raise
        return pushed


class WorkerPool:
    """
    Deletes buffered blobs with a fixed number of worker threads.

    Each worker pops a name and deletes it, sleeps while the buffer is empty
    but the listing is still running, and exits once the listing is done
    and the buffer is empty.

    Attributes:
        concurrency: Number of worker threads.
        on_error: "halt" stops every worker on the first failed delete,
            "continue" logs the failure and moves on.
    """

    def __init__(
        self,
        client: BlobStorageClient,
        buffer: PendingBuffer,
        stats: RunStatistics,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_error: str = "halt",
        idle_delay: float = 1.0,
    ) -> None:
        self.client = client
        self.buffer = buffer
        self.stats = stats
        self.concurrency = concurrency
        self.on_error = on_error
        self.idle_delay = idle_delay
        self._failure: DeleterError | None = None
        self._failure_lock = Lock()

    def run(self, producer_done: Event, abort: Event) -> None:
        """
        Drain the buffer until the listing is done and nothing is left.

        Raises:
            DeleterError: The first failed delete, under the halt policy.
        """
        self._failure = None
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="delete"
        ) as executor:
            futures = [
                executor.submit(self._work, producer_done, abort)
                for _ in range(self.concurrency)
            ]
            for future in futures:
                future.result()

        if self._failure is not None:
            raise self._failure

    def _work(self, producer_done: Event, abort: Event) -> None:
        while not abort.is_set():
            # read done before popping so an empty pop after done means drained
            listing_done = producer_done.is_set()
            name = self.buffer.pop_one()
            if name is not None:
                self._delete(name, abort)
            elif not listing_done:
                logger.log(VERBOSE, "waiting on buffer to refill...")
                abort.wait(self.idle_delay)
            else:
                return

    def _delete(self, name: str, abort: Event) -> None:
        try:
            self.client.delete_blob(name)
        except DeleterError as e:
            # signing failures affect every request, so they halt under any policy
            if self.on_error == "continue" and not isinstance(e, SigningError):
                self.stats.increment_failed()
                logger.error(f'There was an error deleting "{name}", but we will continue: {e}')
                return
            abort.set()
            with self._failure_lock:
                if self._failure is None:
                    self._failure = e
            logger.error(f'There was an error deleting "{name}": {e}')
            return
        self.stats.increment_deleted()


# === Progress ===


def open_file_descriptors() -> int:
    """Count this process's open file descriptors (handles on Windows)."""
    process = psutil.Process()
    if hasattr(process, "num_fds"):
        return process.num_fds()
    return process.num_handles()


class ProgressReporter:
    """Logs the deletion rate of the current cycle on a fixed interval."""

    def __init__(self, stats: RunStatistics, interval: float = 1.0) -> None:
        self.stats = stats
        self.interval = interval
        self._stop = Event()
        self._thread: threading.Thread | None = None

    def format_line(self) -> str:
        snapshot = self.stats.snapshot()
        count = snapshot.deleted_count
        elapsed = snapshot.elapsed()
        minutes = elapsed / 60
        descriptors = open_file_descriptors()
        if count > 0 and elapsed > 0:
            return (
                f"{count} blob(s) deleted after {minutes:.2f} minutes, "
                f"{round(count / elapsed)}/sec, file desc: {descriptors}."
            )
        return f"{count} blob(s) deleted after {minutes:.2f} minutes, file desc: {descriptors}."

    def report(self) -> None:
        logger.info(self.format_line())

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="progress", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.report()


# === Retry cycles ===


class RetryController:
    """
    Runs retries + 1 full list-then-delete cycles.

    Every cycle re-lists the container from the start, so blobs created
    after the previous listing are picked up too.

    Attributes:
        state: One of initializing, listing, draining, retrying, finished.
        stats: Counters of the current cycle.
    """

    def __init__(
        self, config: DeleterConfig, client: BlobStorageClient | None = None
    ) -> None:
        self.config = config
        self.client = client if client is not None else BlobStorageClient(config)
        self.buffer = PendingBuffer(config.buffer_capacity)
        self.stats = RunStatistics()
        self.reporter = ProgressReporter(self.stats, config.progress_interval)
        self.state = "initializing"
        self._abort = Event()

    def cancel(self) -> None:
        """Stop listing and deleting as soon as in-flight calls return."""
        self._abort.set()

    def list_only(self) -> int:
        """Log the names that a delete run would remove and return their count."""
        producer = ListingProducer(self.client, self.buffer)
        self.state = "listing"
        count = 0
        for name in producer.iter_names():
            logger.info(name)
            count += 1
        logger.info(f"{count} blob(s) would have been deleted.")
        self.state = "finished"
        return count

    def run(self) -> list[RunStatistics]:
        """
        Execute every cycle.

        Returns:
            A statistics snapshot per completed cycle.

        Raises:
            DeleterError: A listing failure, or a delete failure under halt.
        """
        results = []
        for cycle in range(self.config.retries + 1):
            if cycle > 0:
                self.state = "retrying"
                logger.info(f"beginning retry attempt {cycle}.")
            results.append(self._run_cycle(cycle))
        self.state = "finished"
        return results

    def _run_cycle(self, cycle: int) -> RunStatistics:
        self.stats.reset(retry_index=cycle)
        self.buffer.clear()

        producer = ListingProducer(self.client, self.buffer, self.config.backpressure_delay)
        pool = WorkerPool(
            self.client,
            self.buffer,
            self.stats,
            concurrency=self.config.concurrency,
            on_error=self.config.on_error,
            idle_delay=self.config.idle_delay,
        )

        self.state = "listing"
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="list") as executor:
            listing = executor.submit(producer.run, self._abort)
            self.state = "draining"
            self.reporter.start()
            try:
                pool.run(producer.done, self._abort)
            finally:
                self.reporter.stop()
            listed = listing.result()

        logger.info(f"delete operation completed ({listed} blob(s) listed).")
        self.reporter.report()
        return self.stats.snapshot()


# === Command line ===


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Every option can also come from the environment variable named in its
    help text; command line values take precedence.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Azure Blob Deleter - Delete every blob in an Azure Storage container",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -a myaccount -c mycontainer -k KEY                 List what would be deleted
  %(prog)s -a myaccount -c mycontainer -k KEY -m delete       Delete everything
  %(prog)s -a myaccount -c mycontainer -s "?sv=..." -p logs/ -m delete -e continue

Settings may also be placed in a .env file in the working directory.
        """,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        type=str.lower,
        choices=sorted(LOG_LEVELS),
        help='LOG_LEVEL. Minimum level to log (default: "info")',
    )
    parser.add_argument(
        "--account", "-a", type=str, help="STORAGE_ACCOUNT. Required. Storage account name"
    )
    parser.add_argument(
        "--container", "-c", type=str, help="STORAGE_CONTAINER. Required. Container name"
    )
    parser.add_argument(
        "--sas", "-s", type=str, help="STORAGE_SAS. Shared Access Signature querystring"
    )
    parser.add_argument("--key", "-k", type=str, help="STORAGE_KEY. Storage account key")
    parser.add_argument(
        "--prefix", "-p", type=str, help="PREFIX. Only delete blobs with this name prefix"
    )
    parser.add_argument(
        "--mode",
        "-m",
        type=str.lower,
        choices=MODES,
        help='MODE. "test" only lists what would be deleted, "delete" deletes (default: "test")',
    )
    parser.add_argument(
        "--concurrency",
        "-x",
        type=int,
        help=f"CONCURRENCY. Delete operations to run at a time (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "--on-error",
        "-e",
        type=str.lower,
        choices=ERROR_POLICIES,
        help='ON_ERROR. "halt" or "continue" after a failed delete (default: "halt")',
    )
    parser.add_argument(
        "--retries",
        "-r",
        type=int,
        help="RETRIES. Extra list-then-delete passes to run (default: 0)",
    )
    parser.add_argument(
        "--timeout",
        "-t",
        type=float,
        help="REQUEST_TIMEOUT. Seconds before a request is abandoned (default: none)",
    )
    return parser.parse_args(argv)


def configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=LOG_LEVELS.get(level_name, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def install_interrupt_handler(controller: RetryController) -> None:
    """On Ctrl-C, print progress once and exit without waiting for workers."""

    def handle_interrupt(signum, frame) -> None:
        logger.info("user terminated the execution.")
        controller.cancel()
        controller.reporter.report()
        logging.shutdown()
        os._exit(0)

    signal.signal(signal.SIGINT, handle_interrupt)


def main(argv: list[str] | None = None) -> None:
    """Main function that runs a listing or a delete."""
    load_dotenv()
    args = parse_arguments(argv)
    config = DeleterConfig.from_sources(args, os.environ)

    configure_logging(config.log_level)
    logger.info(f'LOG_LEVEL set to "{config.log_level}".')
    config.log_settings()

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    controller = RetryController(config)

    if config.mode == "test":
        try:
            controller.list_only()
        except KeyboardInterrupt:
            logger.warning("user terminated the execution.")
            sys.exit(0)
        except DeleterError as e:
            logger.error("There was a fatal error. Program aborting.")
            logger.error(str(e))
            sys.exit(1)
        return

    install_interrupt_handler(controller)
    try:
        controller.run()
    except DeleterError as e:
        logger.error(
            f"There was a fatal error. Program aborting after "
            f"{controller.stats.deleted_count} deleted."
        )
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()

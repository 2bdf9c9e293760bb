"""Readiness polling for freshly started databases."""

import enum
import time
from typing import Callable, Optional

from pgclone.constants import READINESS_INTERVAL_SECONDS
from pgclone.errors import PgCloneError, ReadinessTimeoutError
from pgclone.services.connection import redact_uri


class ReadinessState(enum.Enum):
    STARTING = "starting"
    POLLING = "polling"
    READY = "ready"
    FAILED = "failed"


class ReadinessPoller:
    """Blocks until a database completes a connection handshake or the deadline passes.

    Every connection error is treated as transient. The poller never waits
    past the deadline: the last sleep is shortened to the remaining time and
    the failure is raised as soon as the deadline is reached. Each connection
    attempt is itself bounded by the time left.
    """

    def __init__(
        self,
        logger,
        connection_factory,
        interval: float = READINESS_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = logger
        self.connection_factory = connection_factory
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self.state = ReadinessState.STARTING
        self.attempts = 0
        self.last_error: Optional[Exception] = None

    def wait(self, uri: str, timeout: float, message: Optional[str] = None):
        self.logger.info("Wait for database to boot up")
        self.state = ReadinessState.POLLING
        self.attempts = 0
        self.last_error = None
        deadline = self.clock() + timeout

        while True:
            remaining = deadline - self.clock()
            if remaining <= 0:
                break

            self.attempts += 1
            try:
                self.connection_factory.check_reachable(uri, timeout=remaining)
            except PgCloneError as exc:
                self.last_error = exc
                self.logger.debug("Database not ready yet (attempt %s): %s", self.attempts, exc)
            else:
                self.state = ReadinessState.READY
                self.logger.debug("Database ready after %s attempt(s)", self.attempts)
                return

            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            self.sleep(min(self.interval, remaining))

        self.state = ReadinessState.FAILED
        detail = message or f"Database at {redact_uri(uri)} did not become ready within {timeout}s."
        if self.last_error is not None:
            detail = f"{detail} Last error: {self.last_error}"
        raise ReadinessTimeoutError(detail)

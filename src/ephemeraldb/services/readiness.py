"""Readiness probing for ephemeraldb.

The retry loop is a plain function over an injectable probe, so it can be
exercised without a container runtime. Only exhausting the time budget is
reported to the caller; individual probe failures are discarded.
"""

import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import pymysql
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    wait_exponential,
    wait_random,
)
from tenacity.stop import stop_base

from ephemeraldb.errors import ReadinessTimeoutError
from ephemeraldb.errors_catalog import actionable_error
from ephemeraldb.models import ConnectionEndpoint, Credentials


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff bounded by total elapsed time rather than attempts."""

    initial_interval: float = 0.5
    multiplier: float = 1.5
    max_interval: float = 60.0
    max_elapsed: float = 120.0
    jitter: float = 0.5

    def wait_strategy(self):
        wait = wait_exponential(
            multiplier=self.initial_interval,
            exp_base=self.multiplier,
            max=self.max_interval,
        )
        if self.jitter > 0:
            # Spreads out probes of containers started at the same moment.
            wait = wait + wait_random(0, self.jitter)
        return wait


class stop_before_elapsed(stop_base):
    """Stop when the next wait would push the elapsed time past ``max_elapsed``.

    Elapsed time is the wall-clock time since the first attempt, or the
    total time spent waiting when the injected sleep does not block.
    """

    def __init__(self, max_elapsed: float):
        self.max_elapsed = max_elapsed

    def __call__(self, retry_state) -> bool:
        elapsed = max(retry_state.seconds_since_start or 0.0, retry_state.idle_for)
        return elapsed + retry_state.upcoming_sleep > self.max_elapsed


def wait_ready(
    probe: Callable[[], object],
    policy: BackoffPolicy,
    sleep: Callable[[float], None] = time.sleep,
    logger=None,
    target: str = "database",
):
    """Call ``probe`` until it stops raising or ``policy.max_elapsed`` would be exceeded."""

    def discard_failure(retry_state):
        if logger is None:
            return
        logger.debug(
            "Readiness probe %s for %s failed (%s); retrying in %.2fs",
            retry_state.attempt_number,
            target,
            retry_state.outcome.exception(),
            retry_state.upcoming_sleep,
        )

    retryer = Retrying(
        stop=stop_before_elapsed(policy.max_elapsed),
        wait=policy.wait_strategy(),
        retry=retry_if_exception_type(Exception),
        sleep=sleep,
        before_sleep=discard_failure,
        reraise=False,
    )

    try:
        retryer(probe)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        raise ReadinessTimeoutError(
            f"{actionable_error('readiness_timeout', address=target, seconds=policy.max_elapsed)}\n"
            f"Last error: {last_error}"
        ) from last_error


def mysql_probe(
    endpoint: ConnectionEndpoint,
    credentials: Credentials,
    database: str,
    connect_timeout: int = 5,
    connect=pymysql.connect,
) -> Callable[[], None]:
    """Open a connection, ping the server and close it again."""

    def probe():
        connection = connect(
            host=endpoint.host,
            port=endpoint.port,
            user=credentials.username,
            password=credentials.password,
            database=database,
            connect_timeout=connect_timeout,
        )
        try:
            connection.ping(reconnect=False)
        finally:
            connection.close()

    return probe


class ReadinessService:
    """Waits for the MySQL server inside a fresh container to accept connections."""

    def __init__(
        self,
        logger,
        console,
        policy: BackoffPolicy,
        database: str,
        connect_timeout: int = 5,
        connect=pymysql.connect,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.logger = logger
        self.console = console
        self.policy = policy
        self.database = database
        self.connect_timeout = connect_timeout
        self.connect = connect
        self.sleep = sleep

    def wait_ready(
        self,
        endpoint: ConnectionEndpoint,
        credentials: Credentials,
        max_elapsed: Optional[float] = None,
    ):
        policy = self.policy if max_elapsed is None else replace(self.policy, max_elapsed=max_elapsed)

        self.console.print("[yellow]Waiting for database to be ready...[/yellow]")
        probe = mysql_probe(
            endpoint,
            credentials,
            database=self.database,
            connect_timeout=self.connect_timeout,
            connect=self.connect,
        )
        wait_ready(probe, policy, sleep=self.sleep, logger=self.logger, target=endpoint.address)

        self.console.print("[green]Database is ready.[/green]")
        self.logger.info("Database at %s accepts connections", endpoint.address)

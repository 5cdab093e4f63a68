"""
engines.py — Ordered engine fallback for play-count extraction.
Each target is tried on one engine at a time, in priority order,
until an attempt succeeds or every engine has failed.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import tracker_config
from count_utils import Target
from page_extractor import EXCEPTION, ExtractionAttempt
from tracker_config import ConfigError

logger = logging.getLogger(__name__)

ALL_ENGINES = "all"

AttemptFn = Callable[["Engine", Target], ExtractionAttempt]


@dataclass(frozen=True)
class Engine:
    name: str
    browser: str
    launch_args: tuple[str, ...] = ()


KNOWN_ENGINES = {
    "chromium": Engine("chromium", "chromium", tracker_config.STEALTH_ARGS),
    "firefox": Engine("firefox", "firefox"),
    "webkit": Engine("webkit", "webkit"),
}


def build_engines(names: Iterable[str]) -> list[Engine]:
    """Resolve engine names (priority order) into Engine entries."""
    engines = []
    for name in names:
        engine = KNOWN_ENGINES.get(name)
        if engine is None:
            raise ConfigError(
                f"Unknown engine '{name}'. Choose from: {', '.join(KNOWN_ENGINES)}"
            )
        if engine not in engines:
            engines.append(engine)
    return engines


@dataclass
class TargetResult:
    target: Target
    value: int | str
    engine: str
    reason: str
    status: int | None = None
    page_length: int | None = None

    @property
    def ok(self) -> bool:
        return self.value != tracker_config.ERROR_VALUE


def jittered_delay(sleep: Callable[[float], None] = time.sleep) -> float:
    delay = random.uniform(tracker_config.DELAY_MIN_SECONDS, tracker_config.DELAY_MAX_SECONDS)
    sleep(delay)
    return delay


def fetch_with_fallback(
    target: Target,
    engines: list[Engine],
    attempt_fn: AttemptFn,
    sleep: Callable[[float], None] = time.sleep,
) -> TargetResult:
    """
    Try each engine in order; the first success wins.
    On exhaustion the result is ERROR tagged with engine "all".
    """
    last: ExtractionAttempt | None = None
    for i, engine in enumerate(engines):
        if i:
            jittered_delay(sleep)
        try:
            attempt = attempt_fn(engine, target)
        except Exception as e:
            logger.exception("Engine %s raised for %s", engine.name, target.url)
            attempt = ExtractionAttempt(engine.name, EXCEPTION, f"exception: {e}")

        logger.info(
            "  [%s] %s -> %s (%s)", engine.name, target.url, attempt.outcome, attempt.reason,
        )
        if attempt.ok:
            return TargetResult(
                target=target,
                value=attempt.count,
                engine=engine.name,
                reason=attempt.reason,
                status=attempt.status,
            )
        last = attempt

    if last is None:
        reason = "all engines failed"
        return TargetResult(target, tracker_config.ERROR_VALUE, ALL_ENGINES, reason)
    return TargetResult(
        target=target,
        value=tracker_config.ERROR_VALUE,
        engine=ALL_ENGINES,
        reason=f"{last.engine}: {last.reason}",
        status=last.status,
        page_length=last.page_length,
    )


def fetch_all(
    targets: list[Target],
    engines: list[Engine],
    attempt_fn: AttemptFn,
    sleep: Callable[[float], None] = time.sleep,
    on_result: Callable[[TargetResult], None] | None = None,
) -> list[TargetResult]:
    """Process targets one at a time, in input order, with a jittered pause between them."""
    results = []
    for i, target in enumerate(targets):
        if i:
            jittered_delay(sleep)
        result = fetch_with_fallback(target, engines, attempt_fn, sleep=sleep)
        results.append(result)
        if on_result is not None:
            on_result(result)
    return results

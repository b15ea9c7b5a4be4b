# src/engine/circuit_breaker.py
"""
CircuitBreaker: bounded retries plus a cool-down window around calls to flaky
external services (git provider APIs).
"""

import logging
import threading
import time

from engine.errors import CircuitOpenError


class CircuitBreaker:
    def __init__(self, max_failures=5, retry_attempts=3, timeout=30.0, backoff_unit=1.0,
                 retry_on=(Exception,), clock=time.monotonic, sleep=time.sleep, name="circuit"):
        self.max_failures = max_failures
        self.retry_attempts = retry_attempts
        self.timeout = timeout
        self.backoff_unit = backoff_unit
        self.retry_on = retry_on
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self.failure_count = 0
        self.last_failure_time = None

    @property
    def state(self) -> str:
        """closed, open, or half-open once the cool-down has passed without a successful call."""
        with self._lock:
            if self.failure_count < self.max_failures:
                return "closed"
            return "open" if self._is_open() else "half-open"

    def _is_open(self) -> bool:
        if self.failure_count < self.max_failures:
            return False
        return self._clock() - (self.last_failure_time or 0) < self.timeout

    def call(self, fn, *args, **kwargs):
        with self._lock:
            if self._is_open():
                raise CircuitOpenError(f"Circuit '{self.name}' is open, try again later")
        return self._with_retries(fn, args, kwargs)

    def _with_retries(self, fn, args, kwargs):
        attempt = 0
        while True:
            try:
                result = fn(*args, **kwargs)
            except self.retry_on as e:
                attempt += 1
                if attempt >= self.retry_attempts:
                    self._record_failure()
                    logging.warning(f"[circuit={self.name}] Call failed after {attempt} attempt(s): {e}")
                    raise
                logging.info(f"[circuit={self.name}] Attempt {attempt} failed, retrying: {e}")
                self._sleep(attempt * self.backoff_unit)
            else:
                self._reset()
                return result

    def _record_failure(self):
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = self._clock()
            if self.failure_count == self.max_failures:
                logging.error(f"[circuit={self.name}] Opened after {self.failure_count} consecutive failures")

    def _reset(self):
        with self._lock:
            self.failure_count = 0
            self.last_failure_time = None

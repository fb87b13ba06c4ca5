"""HTTP client with timeouts, failure classification and a fixed backoff schedule."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
    wait_none,
)

from envcollect.common.constants import USER_AGENT
from envcollect.common.errors import StageError
from envcollect.common.logging import get_logger, log_event

RATE_LIMITED_STATUS = 429


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 15.0
    read: float = 15.0


@dataclass(frozen=True)
class RetryConfig:
    backoff_seconds: tuple[float, ...] = (1.0, 2.0, 4.0)

    @property
    def max_attempts(self) -> int:
        return len(self.backoff_seconds) + 1


class HttpRequestError(StageError):
    """Terminal request failure; retrying cannot succeed."""

    error_code = "HTTP_ERROR"


class PayloadError(HttpRequestError):
    """Response decoded badly or carried no usable data."""

    error_code = "PAYLOAD_ERROR"


class RetryableHttpError(HttpRequestError):
    error_code = "HTTP_RETRYABLE"


class RetriesExhaustedError(HttpRequestError):
    error_code = "RETRIES_EXHAUSTED"

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"exhausted retries after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_retryable_status(status: int) -> bool:
    return status == RATE_LIMITED_STATUS or status >= 500


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self._shared_session = session
        self._session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.sleep = sleep
        self.logger = logger or get_logger(__name__)

    @property
    def session(self) -> requests.Session:
        """The injected session, or one per calling thread."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
            return
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status == 200:
            return
        if is_retryable_status(status):
            raise RetryableHttpError(f"Retryable HTTP status: {status}")
        raise HttpRequestError(f"HTTP status: {status}")

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                headers=self._headers(headers),
                timeout=(self.timeout.connect, self.timeout.read),
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            # Exception text can echo request details, so only the type is surfaced.
            raise RetryableHttpError(f"Transient network failure: {type(exc).__name__}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Request could not be sent: {type(exc).__name__}") from exc

        self._raise_for_status_or_retry(response)

        try:
            return response.json()
        except ValueError as exc:
            raise PayloadError(f"Invalid JSON payload from {url}") from exc

    def _wait_strategy(self):
        if not self.retry.backoff_seconds:
            return wait_none()
        return wait_chain(*[wait_fixed(seconds) for seconds in self.retry.backoff_seconds])

    def _log_retry(self, retry_state: RetryCallState, context: dict[str, Any]) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        log_event(
            self.logger,
            f"retrying after {error}; sleeping {delay}s",
            level=logging.WARNING,
            event="FETCH_RETRY",
            status="retry",
            attempt=retry_state.attempt_number,
            error_code=getattr(error, "error_code", None),
            **context,
        )

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> Any:
        log_context = context or {}

        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_exception_type(RetryableHttpError),
            sleep=self.sleep,
            before_sleep=lambda state: self._log_retry(state, log_context),
        )
        def _wrapped() -> Any:
            return self._request_json(method, url, params=params, headers=headers)

        try:
            return _wrapped()
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            raise RetriesExhaustedError(self.retry.max_attempts, last_error) from last_error

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> Any:
        return self.request_json("GET", url, params=params, headers=headers, context=context)

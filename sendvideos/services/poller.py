"""
Task status poller.

After an upload returns a task id, ask {status_url}/{task_id} on a fixed
interval until the server reports "completed", the attempt budget runs
out, the session is cancelled, or a response cannot be parsed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from ..config import Settings
from ..models import PollResult, PollState, UploaderConfig
from ..protocols import IAPIClient
from ..utils.events import safe_call

logger = logging.getLogger(__name__)

COMPLETED = "completed"

PollCallback = Callable[[bool, Optional[Dict[str, Any]]], Union[None, Awaitable[None]]]


class ParseError(ValueError):
    """Status body is not the expected JSON object."""


def parse_status(response: httpx.Response) -> Dict[str, Any]:
    """Return the decoded status body or raise ParseError."""
    try:
        body = response.json()
    except ValueError as exc:
        raise ParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(body, dict) or not isinstance(body.get("status"), str):
        raise ParseError("missing status field")
    if body["status"] == COMPLETED and not isinstance(body.get("result"), dict):
        raise ParseError("completed status without result object")
    return body


class PollSession:
    """
    One polling cycle for a task id.

    State machine: POLLING -> COMPLETED | EXHAUSTED | CANCELLED | PARSE_ERROR.
    """

    def __init__(self, task_id: str, url: str, interval: float, max_attempts: int):
        self.task_id = task_id
        self.url = url
        self.interval = interval
        self.max_attempts = max_attempts
        self.attempts = 0
        self.state = PollState.POLLING
        self._done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.state == PollState.POLLING

    @property
    def done(self) -> bool:
        return self._done.done()

    def cancel(self) -> None:
        """Stop scheduling further attempts. A late response is discarded."""
        if not self.active:
            return
        logger.info(f"[poll] Polling for task {self.task_id} cancelled after {self.attempts} attempts")
        self._finish(PollState.CANCELLED)
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait(self) -> PollResult:
        return await asyncio.shield(self._done)

    def _finish(
        self,
        state: PollState,
        payload: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> PollResult:
        self.state = state
        result = PollResult(
            task_id=self.task_id,
            state=state,
            attempts=self.attempts,
            payload=payload,
            error=error,
        )
        if not self._done.done():
            self._done.set_result(result)
        return result


class TaskStatusPoller:
    """
    Starts poll sessions against the status endpoint.

    Usage:
        session = poller.poll_status(task_id)
        result = await session.wait()
    """

    def __init__(
        self,
        api_client: IAPIClient,
        settings: Settings,
        config: Optional[UploaderConfig] = None,
    ):
        self._api = api_client
        self._settings = settings
        self._config = config or UploaderConfig()

    def update_settings(self, settings: Settings) -> None:
        self._settings = settings

    def poll_status(
        self,
        task_id: str,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        callback: Optional[PollCallback] = None,
    ) -> PollSession:
        """Start polling in the background; must be called from a running event loop."""
        session = PollSession(
            task_id=task_id,
            url=f"{self._settings.status_url}/{task_id}",
            interval=self._config.poll_interval if interval is None else interval,
            max_attempts=self._config.poll_max_attempts if max_attempts is None else max_attempts,
        )
        session._task = asyncio.get_running_loop().create_task(self._run(session, callback))
        return session

    async def _run(self, session: PollSession, callback: Optional[PollCallback]) -> None:
        try:
            result = await self._loop(session)
        except Exception as exc:
            if not session.active:
                return
            logger.error(f"[poll] Polling for task {session.task_id} aborted: {exc!r}")
            result = session._finish(PollState.EXHAUSTED, error=f"Status query failed: {exc}")
        if result is None or result.state == PollState.CANCELLED:
            return
        if callback is not None:
            await safe_call(callback, result.success, result.payload, label="[poll] result callback")

    async def _loop(self, session: PollSession) -> Optional[PollResult]:
        while session.active:
            result = await self._attempt(session)
            if result is not None:
                return result
            await asyncio.sleep(session.interval)
        return None

    async def _attempt(self, session: PollSession) -> Optional[PollResult]:
        """Run one request. Returns a terminal result or None to keep polling."""
        session.attempts += 1
        logger.debug(
            f"[poll] Checking status for task {session.task_id} "
            f"(attempt {session.attempts}/{session.max_attempts})"
        )

        try:
            response = await self._api.get(session.url, check_status=False)
        except httpx.HTTPError as exc:
            if not session.active:
                return PollResult(session.task_id, PollState.CANCELLED, session.attempts)
            logger.error(f"[poll] Failed to check status: {exc!r}")
            if session.attempts >= session.max_attempts:
                return session._finish(PollState.EXHAUSTED, error="Status query failed")
            return None

        if not session.active:
            logger.debug(f"[poll] Discarding response for cancelled task {session.task_id}")
            return PollResult(session.task_id, PollState.CANCELLED, session.attempts)

        try:
            body = parse_status(response)
        except ParseError as exc:
            logger.error(f"[poll] Error parsing response: {exc}")
            return session._finish(PollState.PARSE_ERROR, error=f"Status parse error: {exc}")

        status = body["status"]
        logger.debug(f"[poll] Task {session.task_id} status: {status}")
        if status == COMPLETED:
            logger.info(f"[poll] Task {session.task_id} completed after {session.attempts} attempts")
            return session._finish(PollState.COMPLETED, payload=body["result"])

        if session.attempts >= session.max_attempts:
            logger.warning(f"[poll] Task {session.task_id} still '{status}' after {session.attempts} attempts")
            return session._finish(PollState.EXHAUSTED, error="Processing timeout, check manually")
        return None

"""
Chunked upload coordinator.

Splits a file into fixed-size chunks and posts them to the upload
endpoint with bounded concurrency. One failed chunk fails the whole job.
"""
from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Union

import httpx

from ..config import Settings
from ..errors import APIError, FileNotReadyError
from ..models import (
    ChunkTask,
    NetworkQuality,
    UploaderConfig,
    UploadJob,
    UploadResult,
    UploadStatus,
)
from ..protocols import IAPIClient, IQualitySource
from ..utils.events import safe_call
from .file_ready import wait_until_ready

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "video/mp4"

UploadCallback = Callable[[bool, Optional[str]], Union[None, Awaitable[None]]]
ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]


def read_chunk(path: Path, chunk: ChunkTask) -> bytes:
    """Read exactly one chunk's byte range with a private file handle."""
    with open(path, "rb") as f:
        f.seek(chunk.start)
        data = f.read(chunk.size)
    if len(data) != chunk.size:
        raise OSError(f"Short read on chunk {chunk.index}: {len(data)}/{chunk.size} bytes")
    return data


def extract_task_id(response: httpx.Response) -> Optional[str]:
    """Pull task_id out of a JSON object body; None when absent or unparseable."""
    try:
        body = response.json()
    except ValueError as exc:
        logger.error(f"[upload] Failed to parse task ID: {exc}")
        return None
    if not isinstance(body, dict):
        logger.error(f"[upload] Failed to parse task ID: body is {type(body).__name__}")
        return None
    value = body.get("task_id")
    if value is None or value == "":
        return None
    return str(value)


class ChunkedUploadCoordinator:
    """
    Uploads one file as a sequence of multipart chunk requests.

    Usage:
        coordinator = ChunkedUploadCoordinator(api, settings, health=monitor)
        result = await coordinator.upload(path)
        if result.success and result.task_id:
            ...
    """

    def __init__(
        self,
        api_client: IAPIClient,
        settings: Settings,
        config: Optional[UploaderConfig] = None,
        health: Optional[IQualitySource] = None,
    ):
        self._api = api_client
        self._settings = settings
        self._config = config or UploaderConfig()
        self._health = health

    def update_settings(self, settings: Settings) -> None:
        self._settings = settings

    async def upload(
        self,
        path: Path,
        callback: Optional[UploadCallback] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadResult:
        """
        Upload `path` and return the job result.

        `callback(success, task_id)` fires exactly once with the same
        outcome; `progress_callback(done_chunks, total_chunks)` fires as
        chunks finish. Nothing raises past this method.
        """
        path = Path(path)
        result = await self._run(path, progress_callback)
        if callback is not None:
            await safe_call(callback, result.success, result.task_id, label="[upload] result callback")
        return result

    async def _run(self, path: Path, progress_callback: Optional[ProgressCallback]) -> UploadResult:
        if self._health is not None and self._health.current_quality == NetworkQuality.POOR:
            logger.warning("[upload] Poor network quality, upload canceled")
            return UploadResult.fail(path.name, UploadStatus.REJECTED, "Poor network quality")

        if not path.is_file():
            logger.error(f"[upload] File not found: {path}")
            return UploadResult.fail(path.name, UploadStatus.FAILED, "File not found")

        try:
            await wait_until_ready(
                path,
                interval=self._config.file_ready_interval,
                timeout=self._config.file_ready_timeout,
            )
        except FileNotReadyError as exc:
            logger.error(f"[upload] {exc}")
            return UploadResult.fail(path.name, UploadStatus.NOT_READY, str(exc))
        except OSError as exc:
            logger.error(f"[upload] Cannot probe {path}: {exc}")
            return UploadResult.fail(path.name, UploadStatus.FAILED, str(exc))

        try:
            file_size = path.stat().st_size
        except OSError as exc:
            logger.error(f"[upload] File disappeared before upload: {path}: {exc}")
            return UploadResult.fail(path.name, UploadStatus.FAILED, str(exc))
        if file_size == 0:
            logger.error(f"[upload] Refusing to upload empty file: {path.name}")
            return UploadResult.fail(path.name, UploadStatus.FAILED, "Empty file")

        job = UploadJob(path=path, file_size=file_size, chunk_size=self._config.chunk_size)
        logger.info(
            f"[upload] Preparing {path.name} ({file_size} bytes): "
            f"file_id={job.file_id} short_name={job.short_name} chunks={job.total_chunks}"
        )
        return await self._upload_chunks(job, progress_callback)

    async def _upload_chunks(
        self,
        job: UploadJob,
        progress_callback: Optional[ProgressCallback],
    ) -> UploadResult:
        semaphore = asyncio.Semaphore(self._config.max_concurrent_uploads)
        logger.info(
            f"[upload] Starting chunk upload with {self._config.max_concurrent_uploads} concurrent workers"
        )
        tasks = [
            asyncio.create_task(self._upload_chunk(job, chunk, semaphore, progress_callback))
            for chunk in job.chunks()
        ]

        done, pending = await asyncio.wait(tasks, timeout=self._config.join_timeout)
        if pending:
            logger.error(
                f"[upload] Upload timeout ({self._config.join_timeout:.0f}s): "
                f"{len(pending)}/{job.total_chunks} chunks unfinished"
            )
            await self._cancel_remaining_tasks(tasks)
            return UploadResult.fail(
                job.original_name,
                UploadStatus.TIMEOUT,
                "Upload timed out",
                file_id=job.file_id,
                total_chunks=job.total_chunks,
                succeeded_chunks=job.success_count,
            )

        if job.has_error:
            logger.error(
                f"[upload] Upload failed with errors. "
                f"Success chunks: {job.success_count}/{job.total_chunks}"
            )
            return UploadResult.fail(
                job.original_name,
                UploadStatus.FAILED,
                "Some chunks failed to upload",
                file_id=job.file_id,
                total_chunks=job.total_chunks,
                succeeded_chunks=job.success_count,
            )

        logger.info(f"[upload] All chunks uploaded successfully. Total: {job.total_chunks}")
        return UploadResult.ok(job.original_name, job.file_id, job.total_chunks, task_id=job.task_id)

    async def _upload_chunk(
        self,
        job: UploadJob,
        chunk: ChunkTask,
        semaphore: asyncio.Semaphore,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        async with semaphore:
            try:
                if job.has_error:
                    logger.warning(f"[upload] Error detected, skipping chunk {chunk.index}")
                    return
                await self._send_chunk(job, chunk)
            finally:
                done = job.record_done()
                logger.debug(f"[upload] Chunk {chunk.index} processing completed")
                if progress_callback is not None:
                    await safe_call(progress_callback, done, job.total_chunks, label="[upload] progress callback")

    async def _send_chunk(self, job: UploadJob, chunk: ChunkTask) -> None:
        logger.debug(
            f"[upload] Processing chunk {chunk.index}/{job.total_chunks} (bytes {chunk.start}-{chunk.end})"
        )
        try:
            payload = await asyncio.to_thread(read_chunk, job.path, chunk)
            response = await self._api.post(
                self._settings.upload_endpoint,
                data={
                    "chunk_number": str(chunk.index),
                    "total_chunks": str(job.total_chunks),
                    "file_id": job.file_id,
                    "original_filename": job.original_name,
                },
                files={"file": (job.short_name, payload, self._media_type(job))},
                headers={"X-File-Name": job.short_name},
                retries=self._config.chunk_retries,
            )
        except APIError as exc:
            logger.error(f"[upload] Chunk {chunk.index} upload failed: {exc.status_code}")
            job.mark_error()
            return
        except Exception as exc:
            logger.error(f"[upload] Error uploading chunk {chunk.index}: {exc!r}")
            job.mark_error()
            return

        if chunk.index == job.last_index:
            job.task_id = extract_task_id(response)
            if job.task_id:
                logger.info(f"[upload] Received task ID: {job.task_id}")
        job.record_success()

    @staticmethod
    def _media_type(job: UploadJob) -> str:
        guessed, _ = mimetypes.guess_type(job.original_name)
        return guessed or DEFAULT_MEDIA_TYPE

    async def _cancel_remaining_tasks(self, tasks: List[asyncio.Task]) -> None:
        """Cancel all remaining tasks gracefully."""
        for task in tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*tasks, return_exceptions=True)

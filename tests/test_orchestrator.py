"""Tests for VideoSender composition root."""
import dataclasses
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from sendvideos.config import Settings
from sendvideos.models import NetworkQuality, PollState, UploadStatus
from sendvideos.orchestrator import VideoSender

from .fakes import BASE_URL, form_field, json_response

RESULT = {"duration": 9, "size": 512, "video_url": "http://server.test/out.mp4", "info": "ok"}


def _healthy_server(server, task_id="task-7"):
    server.route("/ping", lambda request: json_response({"status": "alive", "response_time": 0.002}))

    def upload(request):
        if form_field(request, "chunk_number") == str(int(form_field(request, "total_chunks")) - 1):
            return json_response({"task_id": task_id})
        return json_response({})

    server.route("/upload", upload)
    statuses = iter(["processing", "completed"])

    def status(request):
        value = next(statuses)
        if value == "completed":
            return json_response({"status": value, "result": RESULT})
        return json_response({"status": value})

    server.route("/check_status", status)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "VID_0001.mp4"
    path.write_bytes(b"v" * 35)
    return path


class TestSend:
    @pytest.mark.asyncio
    async def test_remote_mode_uploads_then_polls(self, server, settings, fast_config, video):
        _healthy_server(server)
        notify = Mock()
        upload_complete = Mock()
        poll_complete = AsyncMock()

        async with VideoSender(settings, config=fast_config, transport=server.transport()) as sender:
            sender.on("notify", notify)
            sender.on("upload_complete", upload_complete)
            sender.on("poll_complete", poll_complete)
            assert sender.monitor.current_quality == NetworkQuality.GOOD
            result = await sender.send(video)

        assert result.success is True
        assert result.upload.status == UploadStatus.SUCCESS
        assert result.upload.task_id == "task-7"
        assert result.poll.state == PollState.COMPLETED
        assert result.poll.processing.video_url == "http://server.test/out.mp4"
        assert len(server.requests_to("/upload")) == 4
        assert len(server.requests_to("/check_status")) == 2

        messages = [c.args[0] for c in notify.call_args_list]
        assert "Video upload complete" in messages
        assert "Task ID: task-7" in messages
        assert "Video processing finished" in messages
        upload_complete.assert_called_once_with(result.upload)
        poll_complete.assert_awaited_once_with(result.poll)

    @pytest.mark.asyncio
    async def test_no_poll_without_task_id(self, server, settings, fast_config, video):
        _healthy_server(server)
        server.route("/upload", lambda request: json_response({}))

        async with VideoSender(settings, config=fast_config, transport=server.transport()) as sender:
            result = await sender.send(video)

        assert result.success is True
        assert result.poll is None
        assert server.requests_to("/check_status") == []

    @pytest.mark.asyncio
    async def test_unreachable_server_rejects_upload(self, server, settings, fast_config, video):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        server.route("/ping", refuse)
        notify = Mock()

        async with VideoSender(settings, config=fast_config, transport=server.transport()) as sender:
            sender.on("notify", notify)
            result = await sender.send(video)

        assert result.success is False
        assert result.upload.status == UploadStatus.REJECTED
        assert server.requests_to("/upload") == []
        assert any("Poor network quality" in c.args[0] for c in notify.call_args_list)

    @pytest.mark.asyncio
    async def test_monitor_disabled_skips_admission(self, server, settings, fast_config, video):
        _healthy_server(server)
        config = dataclasses.replace(fast_config, monitor_network=False)

        async with VideoSender(settings, config=config, transport=server.transport()) as sender:
            assert not sender.monitor.is_running
            result = await sender.send(video, poll=False)

        assert result.success is True
        assert server.requests_to("/ping") == []
        assert result.poll is None


class TestLocalMode:
    @pytest.mark.asyncio
    async def test_delegates_to_local_processor(self, server, fast_config, video):
        settings = Settings(base_url=BASE_URL, remote_upload=False)
        _healthy_server(server)
        processor = AsyncMock(return_value=["frame_0001.jpg"])

        async with VideoSender(settings, config=fast_config, local_processor=processor, transport=server.transport()) as sender:
            result = await sender.send(video)

        assert result.success is True
        assert result.remote is False
        assert result.local_output == ["frame_0001.jpg"]
        processor.assert_awaited_once_with(video)
        assert server.requests_to("/upload") == []

    @pytest.mark.asyncio
    async def test_without_processor_reports_error(self, server, fast_config, video):
        settings = Settings(base_url=BASE_URL, remote_upload=False)
        _healthy_server(server)

        async with VideoSender(settings, config=fast_config, transport=server.transport()) as sender:
            result = await sender.send(video)

        assert result.success is False
        assert result.error == "No local processor configured"

    @pytest.mark.asyncio
    async def test_processor_failure_is_contained(self, server, fast_config, video):
        settings = Settings(base_url=BASE_URL, remote_upload=False)
        _healthy_server(server)
        processor = Mock(side_effect=RuntimeError("transcoder crashed"))

        async with VideoSender(settings, config=fast_config, local_processor=processor, transport=server.transport()) as sender:
            result = await sender.send(video)

        assert result.success is False
        assert result.error == "transcoder crashed"


class TestPollingAndSettings:
    @pytest.mark.asyncio
    async def test_start_polling_returns_cancellable_session(self, server, settings, fast_config):
        server.route("/ping", lambda request: json_response({"status": "alive", "response_time": 0.002}))
        server.route("/check_status", lambda request: json_response({"status": "processing"}))

        async with VideoSender(settings, config=fast_config, transport=server.transport()) as sender:
            session = sender.start_polling("abc", interval=10, max_attempts=3)
            session.cancel()
            result = await session.wait()

        assert result.state == PollState.CANCELLED

    @pytest.mark.asyncio
    async def test_update_settings_reaches_services(self, server, fast_config, video):
        _healthy_server(server)
        config = dataclasses.replace(fast_config, monitor_network=False)

        async with VideoSender(Settings(), config=config, transport=server.transport()) as sender:
            sender.update_settings(Settings(base_url="http://moved.test", remote_upload=True))
            result = await sender.send(video, poll=False)

        assert result.success is True
        assert {r.url.host for r in server.requests} == {"moved.test"}

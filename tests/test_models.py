"""Tests for sendvideos models and settings."""
from pathlib import Path

import pytest

from sendvideos.config import Settings
from sendvideos.errors import ConfigError
from sendvideos.models import (
    MB,
    PollResult,
    PollState,
    ProcessingResult,
    UploaderConfig,
    UploadJob,
    UploadResult,
    UploadStatus,
    count_chunks,
    generate_short_name,
    plan_chunks,
)


class TestChunkPlanning:
    @pytest.mark.parametrize(
        "file_size,expected",
        [(1, 1), (20 * MB, 1), (20 * MB + 1, 2), (45 * MB, 3), (60 * MB, 3)],
    )
    def test_count_chunks(self, file_size, expected):
        assert count_chunks(file_size, 20 * MB) == expected

    def test_count_chunks_rejects_bad_size(self):
        with pytest.raises(ValueError):
            count_chunks(100, 0)

    def test_plan_covers_file_without_gaps(self):
        chunks = plan_chunks(45 * MB, 20 * MB)

        assert [c.index for c in chunks] == [0, 1, 2]
        assert chunks[0].start == 0
        assert chunks[-1].end == 45 * MB
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.end == nxt.start
        assert [c.size for c in chunks] == [20 * MB, 20 * MB, 5 * MB]

    def test_empty_file_has_no_chunks(self):
        assert plan_chunks(0, 10) == []


class TestShortName:
    def test_keeps_extension(self):
        name = generate_short_name("VID_20240101_120000.mp4")
        assert len(name) == 12
        assert name.endswith(".mp4")

    def test_without_extension(self):
        assert len(generate_short_name("recording")) == 8

    def test_random(self):
        assert generate_short_name("a.mp4") != generate_short_name("a.mp4")


class TestUploadJob:
    def test_defaults(self):
        job = UploadJob(path=Path("/videos/clip.mov"), file_size=25, chunk_size=10)

        assert job.original_name == "clip.mov"
        assert job.short_name.endswith(".mov")
        assert job.total_chunks == 3
        assert job.last_index == 2
        assert len(job.file_id) == 36
        assert job.has_error is False

    def test_error_flag_is_sticky(self):
        job = UploadJob(path=Path("clip.mp4"), file_size=25, chunk_size=10)
        job.mark_error()
        job.record_success()
        assert job.has_error is True
        assert job.success_count == 1
        assert job.record_done() == 1
        assert job.record_done() == 2

    def test_file_ids_are_unique(self):
        a = UploadJob(path=Path("clip.mp4"), file_size=1, chunk_size=10)
        b = UploadJob(path=Path("clip.mp4"), file_size=1, chunk_size=10)
        assert a.file_id != b.file_id


class TestUploadResult:
    def test_ok_result(self):
        result = UploadResult.ok("clip.mp4", file_id="f1", total_chunks=3, task_id="t1")
        assert result.success is True
        assert result.status == UploadStatus.SUCCESS
        assert result.succeeded_chunks == 3
        assert result.task_id == "t1"

    def test_fail_result(self):
        result = UploadResult.fail("clip.mp4", UploadStatus.REJECTED, "Poor network quality")
        assert result.success is False
        assert result.error == "Poor network quality"
        assert result.task_id is None

    def test_immutable(self):
        result = UploadResult.ok("clip.mp4", "f1", 1)
        with pytest.raises(Exception):
            result.task_id = "x"


class TestProcessingResult:
    def test_summary(self):
        result = ProcessingResult.from_payload(
            {"duration": 12.5, "size": "2048", "video_url": "http://s/v.mp4", "info": "ok"}
        )
        assert result.duration == 12.5
        assert result.size == 2048.0
        assert result.summary() == (
            "Video processing finished\n"
            "Duration: 12.5s\n"
            "Size: 2048KB\n"
            "URL: http://s/v.mp4\n"
            "Info: ok"
        )

    def test_partial_payload(self):
        result = ProcessingResult.from_payload({"duration": "n/a"})
        assert result.duration is None
        assert result.summary() == "Video processing finished"

    def test_poll_result_processing(self):
        done = PollResult("t1", PollState.COMPLETED, attempts=2, payload={"video_url": "u"})
        assert done.success is True
        assert done.processing.video_url == "u"
        assert PollResult("t1", PollState.EXHAUSTED, attempts=30).processing is None


class TestUploaderConfig:
    def test_defaults(self):
        config = UploaderConfig()
        assert config.chunk_size == 20 * MB
        assert config.max_concurrent_uploads == 3
        assert config.join_timeout == 300.0
        assert config.file_ready_interval == 1.5
        assert config.ping_interval == 0.5
        assert config.ping_timeout == 1.0
        assert config.poll_interval == 2.0
        assert config.poll_max_attempts == 30

    def test_from_env(self):
        config = UploaderConfig.from_env(
            {"SENDVIDEOS_MAX_PARALLEL": "5", "SENDVIDEOS_CHUNK_RETRIES": "2"},
            poll_max_attempts=4,
        )
        assert config.max_concurrent_uploads == 5
        assert config.chunk_retries == 2
        assert config.poll_max_attempts == 4

    def test_from_env_ignores_blank(self):
        assert UploaderConfig.from_env({"SENDVIDEOS_MAX_PARALLEL": ""}).max_concurrent_uploads == 3


class TestSettings:
    def test_derived_urls(self):
        settings = Settings(base_url="http://192.168.1.20:5000/")
        assert settings.configured is True
        assert settings.ping_url == "http://192.168.1.20:5000/ping"
        assert settings.upload_endpoint == "http://192.168.1.20:5000/upload"
        assert settings.status_url == "http://192.168.1.20:5000/check_status"

    def test_explicit_upload_url(self):
        settings = Settings(base_url="http://a:5000", upload_url="http://b:8000/api/upload")
        assert settings.upload_endpoint == "http://b:8000/api/upload"
        assert settings.status_url == "http://b:8000/api/check_status"

    def test_validate(self):
        assert Settings(base_url="https://ok.test").validate().base_url == "https://ok.test"
        with pytest.raises(ConfigError, match="URL cannot be empty"):
            Settings(base_url="  ").validate()
        with pytest.raises(ConfigError, match="must start with"):
            Settings(base_url="ok.test:5000").validate()

    def test_from_env(self):
        settings = Settings.from_env(
            {"SENDVIDEOS_BASE_URL": "http://s:5000", "SENDVIDEOS_REMOTE_UPLOAD": "True"}
        )
        assert settings.base_url == "http://s:5000"
        assert settings.remote_upload is True
        assert settings.upload_url is None
        assert Settings.from_env({}).configured is False

    def test_with_base_url_keeps_mode(self):
        settings = Settings(base_url="http://old", remote_upload=True).with_base_url("http://new")
        assert settings.base_url == "http://new"
        assert settings.remote_upload is True

"""Tests for job configuration and environment settings."""

import pytest

from chunkpipe.core.config import DEFAULT_BASE_URL, DEFAULT_PARALLEL_THRESHOLD, Settings
from chunkpipe.core.exceptions import InvalidConfigError
from chunkpipe.core.models import MB, JobConfig, ProjectMetadata


class TestJobConfig:
    def test_defaults(self) -> None:
        config = JobConfig()

        assert config.chunk_size_bytes == 5 * MB
        assert config.max_concurrency == 8
        assert config.max_retries == 3
        assert config.base_backoff_ms == 1000
        assert config.per_chunk_timeout_ms == 120_000
        assert config.failure_threshold == 0.5

    @pytest.mark.parametrize(
        "field,value",
        [
            ("chunk_size_bytes", 0),
            ("max_concurrency", 0),
            ("max_retries", -1),
            ("per_chunk_timeout_ms", 0),
            ("failure_threshold", 1.0),
        ],
    )
    def test_invalid_values_raise_invalid_config(self, field: str, value) -> None:
        with pytest.raises(InvalidConfigError) as exc_info:
            JobConfig(**{field: value})
        assert exc_info.value.field == field
        assert exc_info.value.value == value

    def test_timeout_floor_for_small_chunks(self) -> None:
        assert JobConfig().timeout_for(MB) == 120_000

    def test_timeout_scales_with_size(self) -> None:
        assert JobConfig().timeout_for(10 * MB) == 300_000

    def test_callable_timeout(self) -> None:
        config = JobConfig(per_chunk_timeout_ms=lambda size: size // 1000)
        assert config.timeout_for(5_000_000) == 5000

    @pytest.mark.parametrize("returned", [0, -5])
    def test_callable_timeout_must_be_positive(self, returned: int) -> None:
        config = JobConfig(per_chunk_timeout_ms=lambda size: returned)

        with pytest.raises(InvalidConfigError) as exc_info:
            config.timeout_for(10)
        assert exc_info.value.field == "per_chunk_timeout_ms"

    def test_merged_returns_validated_copy(self) -> None:
        config = JobConfig()
        merged = config.merged(max_retries=5)

        assert merged.max_retries == 5
        assert config.max_retries == 3
        with pytest.raises(InvalidConfigError):
            config.merged(chunk_size_bytes=-5)

    def test_frozen(self) -> None:
        with pytest.raises(Exception):
            JobConfig().max_retries = 9


class TestProjectMetadata:
    def test_accepts_wire_names(self) -> None:
        metadata = ProjectMetadata.model_validate(
            {"projectName": "p", "targetPlatforms": ["youtube"], "numClips": 5}
        )
        assert metadata.project_name == "p"
        assert metadata.num_clips == 5

    def test_payload_uses_wire_names(self) -> None:
        payload = ProjectMetadata(project_name="p").as_payload()
        assert payload["projectName"] == "p"
        assert payload["sourceType"] == "file"

    def test_requires_project_name(self) -> None:
        with pytest.raises(ValueError):
            ProjectMetadata(project_name="")


class TestSettings:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "BASE_URL", "CHUNK_SIZE_MB", "MAX_CONCURRENCY", "MAX_RETRIES",
            "BACKOFF_MS", "TIMEOUT_MS", "PARALLEL_THRESHOLD_MB",
        ):
            monkeypatch.delenv(f"CHUNKPIPE_{name}", raising=False)

    def test_defaults_without_env(self) -> None:
        settings = Settings.from_env()

        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.parallel_threshold_bytes == DEFAULT_PARALLEL_THRESHOLD

    def test_reads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNKPIPE_BASE_URL", "http://svc:9000")
        monkeypatch.setenv("CHUNKPIPE_CHUNK_SIZE_MB", "8")
        monkeypatch.setenv("CHUNKPIPE_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("CHUNKPIPE_PARALLEL_THRESHOLD_MB", "0.5")

        settings = Settings.from_env()

        assert settings.base_url == "http://svc:9000"
        assert settings.chunk_size_bytes == 8 * MB
        assert settings.max_concurrency == 4
        assert settings.parallel_threshold_bytes == MB // 2

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNKPIPE_MAX_RETRIES", "7")

        assert Settings.from_env(max_retries=1).max_retries == 1
        assert Settings.from_env(max_retries=None).max_retries == 7

    def test_bad_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNKPIPE_MAX_RETRIES", "lots")

        with pytest.raises(InvalidConfigError) as exc_info:
            Settings.from_env()
        assert exc_info.value.field == "CHUNKPIPE_MAX_RETRIES"

    def test_job_config(self) -> None:
        config = Settings(max_retries=1, timeout_ms=5000).job_config(2 * MB)

        assert config.chunk_size_bytes == 2 * MB
        assert config.max_retries == 1
        assert config.per_chunk_timeout_ms == 5000

    def test_job_config_validates(self) -> None:
        with pytest.raises(InvalidConfigError):
            Settings(max_concurrency=0).job_config()

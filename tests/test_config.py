"""
Tests for environment configuration.
"""

import pytest

from ltxworker.config import DEFAULT_DATABASE_URL, WorkerConfig
from ltxworker.errors import ConfigError


class TestWorkerConfig:
    """Test WorkerConfig.from_env."""

    def test_defaults(self):
        config = WorkerConfig.from_env({})

        assert config.database_url == DEFAULT_DATABASE_URL
        assert config.poll_interval == pytest.approx(0.6)
        assert config.max_concurrency == 4
        assert config.repair_retries == 3
        assert config.fetch_timeout == 15.0
        assert config.model_timeout == 120.0
        assert config.model_name == "gpt-4o-mini"
        assert config.api_key is None
        assert config.health_port == 8081
        assert config.log_level == "INFO"

    def test_overrides(self):
        config = WorkerConfig.from_env({
            "DATABASE_URL": "postgresql+psycopg://localhost/ltx",
            "WORKER_POLL_INTERVAL_MS": "250",
            "WORKER_MAX_CONCURRENCY": "8",
            "WORKER_REPAIR_RETRIES": "0",
            "FETCH_TIMEOUT_S": "5",
            "LLM_MODEL": "gpt-4o",
            "OPENAI_API_KEY": "sk-test",
            "HEALTH_PORT": "0",
            "LOG_LEVEL": "debug",
        })

        assert config.database_url == "postgresql+psycopg://localhost/ltx"
        assert config.poll_interval == pytest.approx(0.25)
        assert config.max_concurrency == 8
        assert config.repair_retries == 0
        assert config.fetch_timeout == 5.0
        assert config.model_name == "gpt-4o"
        assert config.api_key == "sk-test"
        assert config.health_port == 0
        assert config.log_level == "DEBUG"

    def test_blank_values_use_defaults(self):
        config = WorkerConfig.from_env({"WORKER_MAX_CONCURRENCY": " ", "OPENAI_API_KEY": ""})
        assert config.max_concurrency == 4
        assert config.api_key is None

    @pytest.mark.parametrize("name,value", [
        ("WORKER_POLL_INTERVAL_MS", "fast"),
        ("WORKER_MAX_CONCURRENCY", "0"),
        ("WORKER_REPAIR_RETRIES", "-1"),
        ("FETCH_TIMEOUT_S", "0"),
        ("MODEL_TIMEOUT_S", "soon"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigError) as exc:
            WorkerConfig.from_env({name: value})
        assert name in str(exc.value)

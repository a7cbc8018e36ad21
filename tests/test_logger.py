"""
Tests for logger functionality.
"""

import threading

import pytest

from ltxworker.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with default settings."""
        logger = StructuredLogger(
            name="test",
            level="INFO",
            log_dir=tmp_path,
            enable_console=False,
        )

        assert logger.logger.name == "test"
        assert logger.metrics["jobs_claimed"] == 0
        assert logger.metrics["model_calls"] == 0

    def test_log_methods(self, tmp_path):
        """All log level methods should work."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_log_with_context(self, tmp_path):
        """Context keywords are written as JSON after the message."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.info("Job claimed", job_id="abc", url="https://example.com")

        content = list(tmp_path.glob("*.log"))[0].read_text()
        assert 'Job claimed | Context: {"job_id": "abc", "url": "https://example.com"}' in content

    def test_set_level(self, tmp_path):
        logger = StructuredLogger(name="test", level="INFO", log_dir=tmp_path, enable_console=False)

        logger.set_level("warning")

        assert logger.logger.level == 30

    def test_metrics_tracking(self, tmp_path):
        """Metrics should be tracked correctly."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.record_claim()
        logger.record_claim()
        logger.record_model_call()
        logger.record_model_call()
        logger.record_model_call()
        logger.record_repair()
        logger.record_job_success()
        logger.record_job_failure("unreachable")

        metrics = logger.get_metrics()

        assert metrics["jobs_claimed"] == 2
        assert metrics["model_calls"] == 3
        assert metrics["repairs"] == 1
        assert metrics["jobs_succeeded"] == 1
        assert metrics["jobs_failed"] == 1
        assert metrics["errors_by_type"]["unreachable"] == 1

    def test_success_rate_calculation(self, tmp_path):
        """Success rate should be calculated correctly."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.record_job_success()
        logger.record_job_success()
        logger.record_job_failure("invalid format after 4 attempts")

        assert logger.get_metrics()["success_rate"] == pytest.approx(0.667, rel=0.01)

    def test_no_success_rate_before_any_job(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        assert "success_rate" not in logger.get_metrics()

    def test_metrics_are_thread_safe(self, tmp_path):
        """Counters stay exact when job slots record concurrently."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        def record():
            for _ in range(500):
                logger.record_claim()

        threads = [threading.Thread(target=record) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert logger.get_metrics()["jobs_claimed"] == 4000

    def test_metrics_summary(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_job_failure("unreachable")

        logger.log_metrics_summary()

        content = list(tmp_path.glob("*.log"))[0].read_text()
        assert "Worker Session Metrics" in content
        assert "unreachable: 1" in content

    def test_log_file_creation(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.info("Test message")

        log_files = list(tmp_path.glob("*.log"))
        assert len(log_files) == 1
        assert log_files[0].name.startswith("ltxworker_")
        assert "Test message" in log_files[0].read_text()


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        """get_logger should return same instance."""
        reset_logger()

        logger1 = get_logger(name="test", log_dir=tmp_path, enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2
        reset_logger()

    def test_reset_logger(self, tmp_path):
        """reset_logger should create new instance."""
        reset_logger()

        logger1 = get_logger(name="test", log_dir=tmp_path, enable_console=False)
        logger1.record_claim()

        reset_logger()

        logger2 = get_logger(name="test", log_dir=tmp_path, enable_console=False)

        assert logger2 is not logger1
        assert logger2.metrics["jobs_claimed"] == 0
        reset_logger()

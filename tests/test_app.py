"""
Tests for the command-line interface.
"""

import sys

import pytest

from ltxworker import app


def run_cli(monkeypatch, capsys, *argv):
    monkeypatch.setattr(sys, "argv", ["ltxworker", *argv])
    app.main()
    return capsys.readouterr().out


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


class TestCli:
    """Test the collaborator-facing commands."""

    def test_submit_status_and_in_progress(self, monkeypatch, capsys, db_url):
        run_cli(monkeypatch, capsys, "--database-url", db_url, "init-db")

        out = run_cli(monkeypatch, capsys, "--database-url", db_url, "submit", "--url", "https://example.com")
        job_id = out.strip().split("Job: ")[1]

        out = run_cli(monkeypatch, capsys, "--database-url", db_url, "status", "--job-id", job_id)
        assert "Status: queued" in out
        assert "Kind: new" in out

        run_cli(monkeypatch, capsys, "--database-url", db_url, "start", "--job-id", job_id)
        out = run_cli(monkeypatch, capsys, "--database-url", db_url, "in-progress")
        assert f"[started] {job_id}" in out

    def test_submit_invalid_url(self, monkeypatch, capsys, db_url):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, capsys, "--database-url", db_url, "submit", "--url", "example.com")

    def test_result_missing(self, monkeypatch, capsys, db_url):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, capsys, "--database-url", db_url, "result", "--url", "https://example.com")

    def test_validate(self, monkeypatch, capsys, tmp_path, valid_llms_txt):
        good = tmp_path / "good.txt"
        good.write_text(valid_llms_txt, encoding="utf-8")
        bad = tmp_path / "bad.txt"
        bad.write_text("no heading here\n", encoding="utf-8")

        assert "Valid" in run_cli(monkeypatch, capsys, "validate", "--file", str(good))

        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, capsys, "validate", "--file", str(bad))
        assert exc.value.code == 2

    def test_bad_config_exits(self, monkeypatch, capsys):
        monkeypatch.setenv("WORKER_MAX_CONCURRENCY", "zero")
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, capsys, "in-progress")
        assert "WORKER_MAX_CONCURRENCY" in str(exc.value.code)

    @pytest.mark.parametrize("value", ["0", "-2", "many"])
    def test_worker_rejects_bad_concurrency(self, monkeypatch, capsys, db_url, value):
        """--concurrency must be a positive integer; argparse exits before the worker starts."""
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, capsys, "--database-url", db_url, "worker", "--concurrency", value)
        assert exc.value.code == 2
        assert "--concurrency" in capsys.readouterr().err

"""End-to-end tests for scripts/run_sync.py against a CSV feed."""

import json

import pytest

from feedsync_kernel.db.engine import reset_engine
from scripts.run_sync import EXIT_FAILED, EXIT_OK, main

SETTINGS = """
environment: development
database_url: sqlite:///{db}
lock:
  backend: lease
feeds:
  posvenda_llc:
    variant: posvenda
    code_prefix: PV
    source:
      kind: csv
      path: {csv}
"""


@pytest.fixture
def feed_files(tmp_path, monkeypatch):
    for name in ("FEEDSYNC_DATABASE_URL", "FEEDSYNC_ENV"):
        monkeypatch.delenv(name, raising=False)
    csv_path = tmp_path / "posvenda.csv"
    csv_path.write_text(
        "Empresa,Valor LLC,Given Name,Sur Name\n"
        "Acme LLC,\"1.500,00\",John,Doe\n"
        ",\"9,00\",,\n",
        encoding="utf-8",
    )
    settings_path = tmp_path / "feedsync.yaml"
    settings_path.write_text(
        SETTINGS.format(db=tmp_path / "cli.db", csv=csv_path), encoding="utf-8",
    )
    yield settings_path, csv_path
    reset_engine()


def _run(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip().startswith("{") else out


class TestRunSyncCli:

    def test_run_then_rerun(self, feed_files, capsys):
        settings_path, _ = feed_files

        code, first = _run(capsys, "--settings", str(settings_path), "--json", "run", "posvenda_llc")
        assert code == EXIT_OK
        assert (first["rowsFetched"], first["rowsTotal"], first["rowsImported"]) == (2, 1, 1)
        assert first["runId"]

        code, second = _run(capsys, "--settings", str(settings_path), "--json", "run", "posvenda_llc")
        assert code == EXIT_OK
        assert (second["rowsImported"], second["rowsUnchanged"]) == (0, 1)

    def test_dry_run_and_preview(self, feed_files, capsys):
        settings_path, _ = feed_files

        code, dry = _run(capsys, "--settings", str(settings_path), "--json", "run", "posvenda_llc", "--dry-run")
        assert code == EXIT_OK
        assert dry["dryRun"] is True
        assert dry["runId"] is None

        code, preview = _run(capsys, "--settings", str(settings_path), "--json", "preview", "posvenda_llc")
        assert code == EXIT_OK
        assert preview["wouldCreate"] == 1
        assert preview["excludedRows"] == 1

    def test_status(self, feed_files, capsys):
        settings_path, _ = feed_files

        code, before = _run(capsys, "--settings", str(settings_path), "--json", "status", "posvenda_llc")
        assert code == EXIT_OK
        assert before == {"last_synced_at": None, "last_run_status": None, "last_run_error": None}

        _run(capsys, "--settings", str(settings_path), "run", "posvenda_llc")
        code, after = _run(capsys, "--settings", str(settings_path), "--json", "status", "posvenda_llc")
        assert after["last_run_status"] == "ok"
        assert after["last_synced_at"] is not None

    def test_missing_source_fails(self, feed_files, capsys):
        settings_path, csv_path = feed_files
        csv_path.unlink()

        code, result = _run(capsys, "--settings", str(settings_path), "--json", "run", "posvenda_llc")

        assert code == EXIT_FAILED
        assert result["status"] == "error"

    def test_unknown_feed(self, feed_files, capsys):
        settings_path, _ = feed_files
        assert main(["--settings", str(settings_path), "run", "nope"]) == EXIT_FAILED
        assert "not configured" in capsys.readouterr().err

"""Unit tests for crm_maintenance.cli."""

from __future__ import annotations

import os
from importlib import metadata

import pytest
import yaml

from src.crm_maintenance import cli
from src.utils.error_handling import StoreAccessError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for key in list(os.environ):
        if key.startswith("APP_"):
            monkeypatch.delenv(key)


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "base.yaml").write_text(yaml.safe_dump({
        "maintenance": {"grace_seconds": 0},
        "logging": {"level": "WARNING"},
    }))
    return str(tmp_path)


@pytest.fixture
def store(monkeypatch, fake_store):
    monkeypatch.setattr(cli, "_create_store", lambda _: fake_store)
    return fake_store


def _delete_notes(config_dir, *extra):
    return cli.main([
        "delete-notes", "--config-dir", config_dir,
        "--from", "2025-01-01", "--to", "2025-01-31", *extra,
    ])


def test_main_prints_version_from_metadata(monkeypatch, capsys):
    monkeypatch.setattr(metadata, "version", lambda _: "9.9.9")

    exit_code = cli.main(["--version"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.strip() == "crm-maintenance 9.9.9"


def test_main_prints_version_from_fallback_when_not_installed(monkeypatch, capsys):
    def _raise_not_found(_: str):
        raise metadata.PackageNotFoundError

    monkeypatch.setattr(metadata, "version", _raise_not_found)

    exit_code = cli.main(["--version"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.strip() == "crm-maintenance 1.0.0"


def test_main_prints_help_without_args(capsys):
    exit_code = cli.main([])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert "CRM document store maintenance utilities" in captured.out


def test_main_validate_config_invokes_validator(monkeypatch, capsys):
    calls = {"count": 0}

    def _fake_validate(config_dir: str, environment: str) -> None:
        calls["count"] += 1
        assert config_dir == "config"
        assert environment == "dev"

    monkeypatch.setattr(cli, "_validate_config", _fake_validate)

    exit_code = cli.main(["validate-config"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert calls["count"] == 1
    assert "Configuration is valid" in captured.out


def test_main_validate_config_reports_errors(tmp_path, capsys):
    (tmp_path / "base.yaml").write_text(yaml.safe_dump({"firestore": {"max_batch_size": 900}}))

    exit_code = cli.main(["validate-config", "--config-dir", str(tmp_path)])

    assert exit_code == 2
    assert "Configuration error" in capsys.readouterr().err


def test_main_validate_config_rejects_bad_preview_size(tmp_path, capsys):
    (tmp_path / "base.yaml").write_text(yaml.safe_dump({"maintenance": {"preview_size": "many"}}))

    exit_code = cli.main(["validate-config", "--config-dir", str(tmp_path)])

    assert exit_code == 2
    assert "maintenance.preview_size" in capsys.readouterr().err


def test_delete_requires_date_range():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["delete-notes", "--where", "source==email"])
    assert excinfo.value.code == 2


def test_dry_run_previews_without_deleting(config_dir, store, capsys):
    exit_code = _delete_notes(config_dir, "--where", "source==email", "--dry-run")

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "DELETE OPERATION SUMMARY" in out
    assert "Mode: DRY RUN (no deletion)" in out
    assert "notes: 3 document(s)" in out
    assert "This was a dry run. No documents were deleted." in out
    assert "[DRY RUN] matched=3 deleted=0 errored=0" in out
    assert store.commits == []


def test_field_operator_value_form(config_dir, store, capsys):
    exit_code = _delete_notes(
        config_dir, "--field", "source", "--operator", "!=", "--value", "email", "--dry-run"
    )

    assert exit_code == 0
    assert "notes: 2 document(s)" in capsys.readouterr().out


def test_yes_deletes_after_grace(config_dir, store, capsys):
    exit_code = _delete_notes(config_dir, "--where", "source==email", "--yes")

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "[DELETE] matched=3 deleted=3 errored=0" in out
    assert sorted(store.documents["notes"]) == ["n4", "n5", "n6"]


def test_declined_confirmation_cancels(config_dir, store, monkeypatch, capsys):
    monkeypatch.setattr("builtins.input", lambda _: "no")

    exit_code = _delete_notes(config_dir, "--where", "source==email")

    assert exit_code == 0
    assert "Deletion cancelled. No documents were deleted." in capsys.readouterr().out
    assert store.commits == []


@pytest.mark.parametrize("extra", [
    ["--where", "source=email"],
    ["--where", "source==email", "--field", "source", "--value", "email"],
    ["--field", "source"],
    ["--collections", "contacts"],
    ["--limit", "-1"],
])
def test_invalid_input_exits_before_store_access(config_dir, monkeypatch, capsys, extra):
    def _fail(_):
        raise AssertionError("store must not be created")

    monkeypatch.setattr(cli, "_create_store", _fail)

    exit_code = _delete_notes(config_dir, *extra)

    assert exit_code == 2
    assert capsys.readouterr().err.startswith("Error:")


def test_inverted_range_is_usage_error(config_dir, monkeypatch, capsys):
    monkeypatch.setattr(cli, "_create_store", lambda _: pytest.fail("store created"))

    exit_code = cli.main([
        "delete-by-date-range", "--config-dir", config_dir,
        "--from", "2025-02-01", "--to", "2025-01-01",
    ])

    assert exit_code == 2
    assert "Invalid date range" in capsys.readouterr().err


def test_store_connection_failure(config_dir, monkeypatch, capsys):
    def _fail(_):
        raise StoreAccessError("Service account key not found: scripts/serviceAccountKey.json")

    monkeypatch.setattr(cli, "_create_store", _fail)

    exit_code = _delete_notes(config_dir, "--dry-run")

    assert exit_code == 1
    assert "Service account key not found" in capsys.readouterr().err


def test_metrics_file_written(config_dir, store, tmp_path):
    metrics_file = tmp_path / "metrics" / "run.prom"

    exit_code = _delete_notes(config_dir, "--dry-run", "--metrics-file", str(metrics_file))

    assert exit_code == 0
    assert 'crm_maintenance_documents_matched_total{collection="notes"} 5.0' in metrics_file.read_text()


def test_parser_defaults_per_command():
    parser = cli.build_parser()

    by_date = parser.parse_args(["delete-by-date-range", "-f", "2025-01-01", "-t", "2025-01-31"])
    notes = parser.parse_args(["delete-notes", "-f", "2025-01-01", "-t", "2025-01-31"])

    assert (by_date.collections, by_date.limit) == ("all", 1000)
    assert (notes.collections, notes.limit) == ("notes", 100)
    assert notes.operator == "=="
    assert not notes.dry_run and not notes.yes


def test_condition_from_args():
    parser = cli.build_parser()
    args = parser.parse_args([
        "delete-notes", "-f", "2025-01-01", "-t", "2025-01-31",
        "--field", "createdBy", "-o", "==", "-v", "userId123",
    ])

    condition = cli.condition_from_args(args)

    assert (condition.field, condition.operator, condition.value) == ("createdBy", "==", "userId123")

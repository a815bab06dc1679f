from __future__ import annotations

import textwrap

import pytest

from checklist_portal.config import GHLConfig, load_config


def _write(tmp_path, content: str):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def test_load_config_defaults(tmp_path):
    path = _write(
        tmp_path,
        """
        sheets:
          credentials_file: creds.json
          spreadsheet_id: abc123
        """,
    )
    config = load_config(path)

    assert config.sheets.spreadsheet_id == "abc123"
    assert config.sheets.credentials_file.is_absolute()
    assert config.sheets.projects_sheet_name == "ALL"
    assert config.sheets.logins_sheet_name == "App: Logins"
    assert config.database_path is None
    assert config.all_companies_token == "ALL"
    assert config.ghl.base_url == "https://rest.gohighlevel.com/v1"
    assert config.ghl.max_workers == 1


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_load_config_empty_file(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, ""))


def test_load_config_rejects_bad_rows(tmp_path):
    path = _write(
        tmp_path,
        """
        sheets:
          credentials_file: creds.json
          spreadsheet_id: abc123
          header_row: 3
          data_start_row: 3
        """,
    )
    with pytest.raises(ValueError, match="data_start_row"):
        load_config(path)


def test_load_config_rejects_too_many_workers(tmp_path):
    path = _write(
        tmp_path,
        """
        sheets:
          credentials_file: creds.json
          spreadsheet_id: abc123
        ghl:
          max_workers: 50
        """,
    )
    with pytest.raises(ValueError):
        load_config(path)


def test_ghl_settings_resolve_from_environment(monkeypatch):
    monkeypatch.setenv("GHL_API_KEY", "env-key")
    monkeypatch.setenv("GHL_LOCATION_ID", "loc-1")
    monkeypatch.delenv("GHL_WEBHOOK_URL", raising=False)

    conf = GHLConfig()
    assert conf.resolved_api_key() == "env-key"
    assert conf.resolved_location_id() == "loc-1"
    assert conf.resolved_webhook_url() is None

    explicit = GHLConfig(api_key="file-key", api_key_env=None)
    assert explicit.resolved_api_key() == "file-key"

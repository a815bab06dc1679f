from __future__ import annotations

import pytest

from checklist_portal.config import AppConfig, SheetsConfig
from checklist_portal.portal import Portal
from checklist_portal.store import PortalStore
from tests.helpers import FakeGHL, FakeSheets


@pytest.fixture
def sheets_config(tmp_path) -> SheetsConfig:
    return SheetsConfig(credentials_file=tmp_path / "creds.json", spreadsheet_id="sheet-123")


@pytest.fixture
def app_config(sheets_config, tmp_path) -> AppConfig:
    return AppConfig(sheets=sheets_config, database_path=tmp_path / "portal.sqlite")


@pytest.fixture
def store(tmp_path):
    portal_store = PortalStore(tmp_path / "portal.sqlite")
    yield portal_store
    portal_store.close()


@pytest.fixture
def fake_sheets(sheets_config) -> FakeSheets:
    return FakeSheets(sheets_config)


@pytest.fixture
def fake_ghl() -> FakeGHL:
    return FakeGHL()


@pytest.fixture
def portal(app_config, store, fake_sheets, fake_ghl) -> Portal:
    return Portal(app_config, store, fake_sheets, fake_ghl)

from __future__ import annotations

import ssl

import httplib2
import pytest
from googleapiclient.errors import HttpError

from checklist_portal import google_sheets
from checklist_portal.google_sheets import GoogleSheetsClient


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": str(status)}), b"{}")


class FlakyRequest:
    """Request whose execute() raises the queued errors before succeeding."""

    def __init__(self, errors, result=None) -> None:
        self.errors = list(errors)
        self.result = result if result is not None else {"values": [["ok"]]}
        self.calls = 0

    def execute(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FakeValues:
    def __init__(self, request: FlakyRequest) -> None:
        self.request = request
        self.kwargs = None

    def get(self, **kwargs):
        self.kwargs = kwargs
        return self.request

    def append(self, **kwargs):
        self.kwargs = kwargs
        return self.request


class FakeService:
    def __init__(self, request: FlakyRequest) -> None:
        self.values_api = FakeValues(request)

    def spreadsheets(self):
        return self

    def values(self):
        return self.values_api


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(google_sheets.time, "sleep", delays.append)
    return delays


@pytest.fixture
def client(sheets_config):
    return GoogleSheetsClient(sheets_config)


def test_transient_status_is_retried_until_success(client, sleeps):
    request = FlakyRequest([_http_error(503), _http_error(429)])
    client._service = object()

    result = client._execute_with_retry(lambda: request, operation="fetch 'ALL'")

    assert result == {"values": [["ok"]]}
    assert request.calls == 3
    assert sleeps == [1.0, 2.0]
    assert client._service is None


def test_client_error_is_raised_without_retry(client, sleeps):
    request = FlakyRequest([_http_error(404)])

    with pytest.raises(HttpError) as excinfo:
        client._execute_with_retry(lambda: request, operation="fetch 'ALL'")

    assert excinfo.value.resp.status == 404
    assert request.calls == 1
    assert sleeps == []


def test_gives_up_after_four_attempts_with_last_error(client, sleeps):
    errors = [_http_error(500), _http_error(502), _http_error(503), _http_error(504)]
    request = FlakyRequest(errors)

    with pytest.raises(HttpError) as excinfo:
        client._execute_with_retry(lambda: request, operation="fetch 'ALL'")

    assert excinfo.value.resp.status == 504
    assert request.calls == 4
    assert sleeps == [1.0, 2.0, 4.0]


def test_transport_errors_are_retried(client, sleeps):
    request = FlakyRequest(
        [ssl.SSLEOFError("EOF occurred"), httplib2.HttpLib2Error("socket closed")]
    )

    assert client._execute_with_retry(lambda: request, operation="append") == {
        "values": [["ok"]]
    }
    assert request.calls == 3
    assert sleeps == [1.0, 2.0]


def test_fetch_values_rebuilds_request_after_failure(client, sleeps, monkeypatch):
    request = FlakyRequest([_http_error(503)], result={"values": [["Email"], ["a@b.com"]]})
    service = FakeService(request)
    built = []

    def service_client():
        built.append(service)
        return service

    monkeypatch.setattr(client, "_service_client", service_client)

    assert client.fetch_values("App: Logins") == [["Email"], ["a@b.com"]]
    assert len(built) == 2
    assert service.values_api.kwargs == {"spreadsheetId": "sheet-123", "range": "App: Logins"}


def test_fetch_values_defaults_to_empty_when_tab_has_no_values(client, monkeypatch):
    service = FakeService(FlakyRequest([], result={"range": "ALL!A1:Z1"}))
    monkeypatch.setattr(client, "_service_client", lambda: service)

    assert client.fetch_projects() == []


def test_append_rows_skips_empty_payload(client, monkeypatch):
    def no_service():
        raise AssertionError("no API call expected")

    monkeypatch.setattr(client, "_service_client", no_service)
    assert client.append_rows("Inspection Requests", []) is None

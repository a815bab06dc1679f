from __future__ import annotations

import json

import pytest
import requests

from checklist_portal.config import GHLConfig
from checklist_portal.ghl import GHLClient
from checklist_portal.models import ContactEmail, Inspection


class _Response:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body
        self.content = json.dumps(body).encode() if body is not None else b""

    def json(self):
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


@pytest.fixture
def calls(monkeypatch):
    recorded = []
    responses = []

    def fake_post(self, url, json=None, headers=None, timeout=None):
        recorded.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return responses.pop(0) if responses else _Response(200, {})

    monkeypatch.setattr(requests.Session, "post", fake_post)
    return recorded, responses


def _conf(**overrides) -> GHLConfig:
    values = {
        "api_key": "key-1",
        "location_id": "loc-1",
        "api_key_env": None,
        "location_id_env": None,
        "webhook_url_env": None,
    }
    values.update(overrides)
    return GHLConfig(**values)


INSPECTION = Inspection(
    id=7,
    project_id=3,
    inspection_type="Framing",
    notes="gate code",
    project_name="Barn",
    project_address="1 Main St",
)


def test_unconfigured_client_does_not_call_out(calls):
    recorded, _ = calls
    client = GHLClient(_conf(api_key=None))
    result = client.sync_inspection(INSPECTION)
    assert not client.is_configured
    assert result.success is False
    assert recorded == []


def test_inspection_goes_to_appointments_api(calls):
    recorded, responses = calls
    responses.append(_Response(200, {"appointment": {"id": "appt-1"}}))

    result = GHLClient(_conf()).sync_inspection(INSPECTION)

    assert result.success is True
    assert result.ghl_id == "appt-1"
    call = recorded[0]
    assert call["url"] == "https://rest.gohighlevel.com/v1/appointments"
    assert call["headers"]["Authorization"] == "Bearer key-1"
    assert call["json"]["title"] == "Framing - Barn (1 Main St)"
    assert call["json"]["locationId"] == "loc-1"
    assert call["timeout"] == 30


def test_webhook_takes_precedence(calls):
    recorded, _ = calls
    client = GHLClient(_conf(webhook_url="https://hooks.example.com/ghl"))
    result = client.sync_contact(
        ContactEmail(id=2, project_id=3, email="pm@acme.com", name="Pat"), "Barn"
    )

    assert result.success is True
    call = recorded[0]
    assert call["url"] == "https://hooks.example.com/ghl"
    assert call["json"] == {
        "type": "contact_added",
        "data": {
            "projectId": 3,
            "opportunityName": "Barn",
            "email": "pm@acme.com",
            "name": "Pat",
        },
    }


def test_contact_goes_to_contacts_api(calls):
    recorded, responses = calls
    responses.append(_Response(200, {"id": "c-9"}))

    result = GHLClient(_conf()).sync_contact(
        ContactEmail(id=2, project_id=3, email="pm@acme.com"), "Barn"
    )
    assert result.ghl_id == "c-9"
    assert recorded[0]["json"]["name"] == "pm@acme.com"
    assert recorded[0]["json"]["tags"] == ["project-3", "Barn"]


def test_http_errors_become_failed_results(calls):
    _, responses = calls
    responses.append(_Response(429, {"message": "slow down"}))

    result = GHLClient(_conf()).sync_inspection(INSPECTION)
    assert result.success is False
    assert "429" in result.error


def test_connection_check(monkeypatch):
    seen = {}

    def fake_get(self, url, headers=None, timeout=None):
        seen["url"] = url
        return _Response(200, {"location": {}})

    monkeypatch.setattr(requests.Session, "get", fake_get)
    assert GHLClient(_conf()).test_connection().success is True
    assert seen["url"] == "https://rest.gohighlevel.com/v1/locations/loc-1"

"""GoHighLevel CRM integration.

Inspections and contact emails are mirrored into GHL either through a
webhook (when one is configured) or through the REST API. Every call
returns a :class:`GHLSyncResult`; transport failures are logged and reported
in the result instead of being raised, so a CRM outage never blocks the
portal action that triggered the push.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import requests

from .config import GHLConfig
from .models import ContactEmail, Inspection

LOGGER = logging.getLogger(__name__)

_NOT_CONFIGURED = "GHL integration not configured"


@dataclass(slots=True)
class GHLSyncResult:
    success: bool
    ghl_id: str | None = None
    error: str | None = None


class GHLClient:
    """Wrapper around the GHL REST API and webhook."""

    def __init__(self, conf: GHLConfig, session: requests.Session | None = None) -> None:
        self._conf = conf
        self._session = session or requests.Session()
        self._api_key = conf.resolved_api_key()
        self._location_id = conf.resolved_location_id()
        self._webhook_url = conf.resolved_webhook_url()

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._location_id)

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self._conf.base_url.rstrip('/')}/{path.lstrip('/')}"

    def sync_inspection(self, inspection: Inspection) -> GHLSyncResult:
        """Push a scheduled inspection as a GHL appointment."""

        if not self.is_configured:
            LOGGER.warning("GHL integration not configured; skipping inspection sync")
            return GHLSyncResult(success=False, error=_NOT_CONFIGURED)

        if self._webhook_url:
            return self._post_webhook(
                "inspection_scheduled",
                {
                    "projectId": inspection.project_id,
                    "projectName": inspection.project_name or "",
                    "projectAddress": inspection.project_address or "",
                    "inspectionType": inspection.inspection_type,
                    "notes": inspection.notes,
                },
            )

        title = (
            f"{inspection.inspection_type} - {inspection.project_name or ''} "
            f"({inspection.project_address or ''})"
        )
        return self._post_api(
            "appointments",
            {
                "locationId": self._location_id,
                "title": title,
                "notes": inspection.notes or "",
            },
            nested_key="appointment",
            operation="sync inspection",
        )

    def sync_contact(self, contact: ContactEmail, opportunity_name: str) -> GHLSyncResult:
        """Create or update a GHL contact tagged with its project."""

        if not self.is_configured:
            LOGGER.warning("GHL integration not configured; skipping contact sync")
            return GHLSyncResult(success=False, error=_NOT_CONFIGURED)

        if self._webhook_url:
            return self._post_webhook(
                "contact_added",
                {
                    "projectId": contact.project_id,
                    "opportunityName": opportunity_name,
                    "email": contact.email,
                    "name": contact.name,
                },
            )

        return self._post_api(
            "contacts",
            {
                "locationId": self._location_id,
                "email": contact.email,
                "name": contact.name or contact.email,
                "tags": [f"project-{contact.project_id}", opportunity_name],
            },
            nested_key="contact",
            operation="sync contact",
        )

    def test_connection(self) -> GHLSyncResult:
        if not self.is_configured:
            return GHLSyncResult(success=False, error=_NOT_CONFIGURED)

        try:
            response = self._session.get(
                self._url(f"locations/{self._location_id}"),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._conf.request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error("GHL connection test failed: %s", exc)
            return GHLSyncResult(success=False, error=str(exc))
        return GHLSyncResult(success=True)

    # Internal ----------------------------------------------------------------
    def _post_webhook(self, event_type: str, data: Dict[str, Any]) -> GHLSyncResult:
        try:
            response = self._session.post(
                self._webhook_url,
                json={"type": event_type, "data": data},
                timeout=self._conf.request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error("GHL webhook '%s' failed: %s", event_type, exc)
            return GHLSyncResult(success=False, error=str(exc))
        return GHLSyncResult(success=True)

    def _post_api(
        self,
        path: str,
        payload: Dict[str, Any],
        *,
        nested_key: str,
        operation: str,
    ) -> GHLSyncResult:
        try:
            response = self._session.post(
                self._url(path),
                json=payload,
                headers=self._auth_headers(),
                timeout=self._conf.request_timeout,
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
        except (requests.RequestException, ValueError) as exc:
            LOGGER.error("GHL %s failed: %s", operation, exc)
            return GHLSyncResult(success=False, error=str(exc))

        if not isinstance(body, dict):
            body = {}
        ghl_id = body.get("id") or (body.get(nested_key) or {}).get("id")
        return GHLSyncResult(success=True, ghl_id=str(ghl_id) if ghl_id else None)

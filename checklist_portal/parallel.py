"""Parallel push of unsynced inspections and contacts to GoHighLevel."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from .ghl import GHLClient, GHLSyncResult
from .models import ContactEmail, Inspection
from .store import PortalStore

LOGGER = logging.getLogger(__name__)

_RATE_LIMIT_INDICATORS = ("rate limit", "429", "too many requests")


@dataclass(slots=True)
class PushSummary:
    inspections_synced: int = 0
    contacts_synced: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def total_synced(self) -> int:
        return self.inspections_synced + self.contacts_synced


def _is_rate_limited(result: GHLSyncResult) -> bool:
    message = (result.error or "").lower()
    return any(indicator in message for indicator in _RATE_LIMIT_INDICATORS)


def push_with_retry(
    label: str,
    push: Callable[[], GHLSyncResult],
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> GHLSyncResult:
    """
    Run a GHL push, backing off when the API reports rate limiting.

    Args:
        label: Human readable record name used in log messages
        push: Callable performing the actual request
        max_retries: Maximum number of attempts
        base_delay: Base delay for exponential backoff (seconds)

    Returns:
        The last result produced by ``push``
    """
    result = GHLSyncResult(success=False, error="not attempted")
    for attempt in range(max_retries):
        result = push()
        if result.success or not _is_rate_limited(result):
            return result
        if attempt < max_retries - 1:
            # Exponential backoff: 1s, 2s, 4s, ...
            delay = base_delay * (2 ** attempt)
            LOGGER.warning(
                "Rate limit hit for %s, retrying in %.1f seconds (attempt %d/%d)",
                label,
                delay,
                attempt + 1,
                max_retries,
            )
            time.sleep(delay)
    return result


def push_pending(
    store: PortalStore,
    client: GHLClient,
    max_workers: int = 1,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> PushSummary:
    """Push every unsynced inspection and contact email and mark successes."""

    summary = PushSummary()
    if not client.is_configured:
        LOGGER.warning("GHL integration not configured; nothing pushed")
        return summary

    inspections = store.list_unsynced_inspections()
    contacts = store.list_unsynced_contact_emails()
    if not inspections and not contacts:
        LOGGER.info("No pending inspections or contacts to push")
        return summary

    project_names: dict[int, str] = {}
    for contact in contacts:
        if contact.project_id not in project_names:
            project = store.get_project(contact.project_id)
            project_names[contact.project_id] = project.opportunity_name if project else ""

    jobs: List[Tuple[str, Inspection | ContactEmail, Callable[[], GHLSyncResult]]] = []
    for inspection in inspections:
        jobs.append(
            (
                f"inspection {inspection.id}",
                inspection,
                lambda inspection=inspection: client.sync_inspection(inspection),
            )
        )
    for contact in contacts:
        opportunity_name = project_names.get(contact.project_id, "")
        jobs.append(
            (
                f"contact {contact.id}",
                contact,
                lambda contact=contact, name=opportunity_name: client.sync_contact(contact, name),
            )
        )

    LOGGER.info(
        "Pushing %d inspections and %d contacts to GHL with %d workers",
        len(inspections),
        len(contacts),
        max_workers,
    )
    start_time = time.time()

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_job = {
            executor.submit(push_with_retry, label, push, max_retries, base_delay): (label, record)
            for label, record, push in jobs
        }
        for future in as_completed(future_to_job):
            label, record = future_to_job[future]
            try:
                result = future.result()
            except Exception:
                LOGGER.exception("Unexpected error pushing %s", label)
                summary.failed.append(label)
                continue

            if not result.success:
                LOGGER.warning("✗ %s was not pushed: %s", label, result.error)
                summary.failed.append(label)
                continue

            if isinstance(record, Inspection):
                store.mark_inspection_synced(record.id, result.ghl_id)
                summary.inspections_synced += 1
            else:
                store.mark_contact_synced(record.id)
                summary.contacts_synced += 1
            LOGGER.debug("✓ %s pushed", label)

    LOGGER.info(
        "GHL push complete: %d synced, %d failed, %.2fs total",
        summary.total_synced,
        len(summary.failed),
        time.time() - start_time,
    )
    summary.failed.sort()
    return summary

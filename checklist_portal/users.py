"""Bulk import of client accounts from a CRM contacts export."""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

from .errors import ValidationError
from .models import User
from .store import PortalStore

LOGGER = logging.getLogger(__name__)

EMAIL_COLUMN = "Email"
FIRST_NAME_COLUMN = "First Name"
LAST_NAME_COLUMN = "Last Name"
COMPANY_COLUMN = "Company Name"

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")


@dataclass(slots=True)
class ImportedUser:
    email: str
    name: str
    company: str
    password: str


@dataclass(slots=True)
class ImportSummary:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    users: List[ImportedUser] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.imported + self.updated


def clean_company_name(company: str | None) -> str:
    """Collapse a company name into a CamelCase password stem."""

    if not company or not company.strip():
        return "User"
    words = [word for word in _NON_ALNUM_RE.sub("", company).split(" ") if word]
    cleaned = "".join(word[0].upper() + word[1:].lower() for word in words)
    return cleaned or "User"


def build_user_imports(rows: Iterable[Mapping[str, str | None]]) -> tuple[List[ImportedUser], int]:
    """Turn export rows into accounts with per-company numbered passwords.

    Rows without an email or a company are skipped. Every remaining row
    advances its company's counter, so passwords read ``Acme1!``,
    ``Acme2!`` and so on in file order. When an email appears twice the
    first row wins.
    """

    counters: Dict[str, int] = {}
    users: List[ImportedUser] = []
    seen: set[str] = set()
    skipped = 0

    for row in rows:
        email = (row.get(EMAIL_COLUMN) or "").strip().lower()
        first = (row.get(FIRST_NAME_COLUMN) or "").strip()
        last = (row.get(LAST_NAME_COLUMN) or "").strip()
        company = (row.get(COMPANY_COLUMN) or "").strip()

        if not email:
            LOGGER.debug("Skipping contact without email: %s", dict(row))
            skipped += 1
            continue
        if not company:
            LOGGER.debug("Skipping contact without company: %s", email)
            skipped += 1
            continue

        counters[company] = counters.get(company, 0) + 1
        if email in seen:
            LOGGER.debug("Duplicate contact ignored: %s", email)
            continue
        seen.add(email)

        users.append(
            ImportedUser(
                email=email,
                name=" ".join(part for part in (first, last) if part) or company,
                company=company,
                password=f"{clean_company_name(company)}{counters[company]}!",
            )
        )

    return users, skipped


def read_contacts(csv_path: str | Path) -> List[Dict[str, str | None]]:
    path = Path(csv_path).expanduser()
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as fh:
            reader = csv.DictReader(fh)
            missing = {EMAIL_COLUMN, COMPANY_COLUMN} - set(reader.fieldnames or ())
            if missing:
                raise ValidationError(
                    f"{path} is missing required columns: {', '.join(sorted(missing))}"
                )
            return [row for row in reader if any((value or "").strip() for value in row.values())]
    except OSError as exc:
        raise ValidationError(f"Cannot read contacts file {path}: {exc}") from exc


def import_users(store: PortalStore, csv_path: str | Path) -> ImportSummary:
    """Create or refresh password accounts for every contact in the export."""

    users, skipped = build_user_imports(read_contacts(csv_path))
    summary = ImportSummary(skipped=skipped, users=users)

    for imported in users:
        existing = store.get_user_by_email(imported.email, "password")
        if existing is not None and existing.login_method == "password":
            open_id = existing.open_id
            role = existing.role
            summary.updated += 1
        else:
            open_id = f"password-{imported.email}"
            role = "user"
            summary.imported += 1

        store.upsert_user(
            User(
                open_id=open_id,
                email=imported.email,
                name=imported.name,
                password=imported.password,
                login_method="password",
                role=role,
                company=imported.company,
            )
        )

    LOGGER.info(
        "Imported %s users (%s new, %s updated, %s skipped)",
        summary.total,
        summary.imported,
        summary.updated,
        summary.skipped,
    )
    return summary


def write_credentials(users: Iterable[ImportedUser], output: str | Path) -> Path:
    """Write the generated logins so they can be handed out to clients."""

    path = Path(output).expanduser()
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow(["Email", "Name", "Company", "Password"])
        for user in users:
            writer.writerow([user.email, user.name, user.company, user.password])
    LOGGER.info("Credentials written to %s", path)
    return path

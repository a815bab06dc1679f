from __future__ import annotations

import pytest

from checklist_portal.errors import ValidationError
from checklist_portal.models import User
from checklist_portal.users import build_user_imports, clean_company_name, import_users

HEADER = "Email,First Name,Last Name,Company Name\n"


def _row(email="", first="", last="", company=""):
    return {"Email": email, "First Name": first, "Last Name": last, "Company Name": company}


@pytest.mark.parametrize(
    "company,expected",
    [
        ("Acme Homes", "AcmeHomes"),
        ("  O'Brien & SONS, LLC ", "ObrienSonsLlc"),
        ("smith  builders", "SmithBuilders"),
        ("123 design", "123Design"),
        ("!!!", "User"),
        ("", "User"),
        (None, "User"),
    ],
)
def test_clean_company_name(company, expected):
    assert clean_company_name(company) == expected


def test_passwords_count_up_per_company():
    users, skipped = build_user_imports(
        [
            _row("a@acme.com", "Ann", "Lee", "Acme Homes"),
            _row("b@other.com", "", "", "Other Co"),
            _row("C@Acme.com ", "Cy", "", "Acme Homes"),
        ]
    )
    assert skipped == 0
    assert [(u.email, u.password) for u in users] == [
        ("a@acme.com", "AcmeHomes1!"),
        ("b@other.com", "OtherCo1!"),
        ("c@acme.com", "AcmeHomes2!"),
    ]
    assert [u.name for u in users] == ["Ann Lee", "Other Co", "Cy"]


def test_rows_without_email_or_company_are_skipped():
    users, skipped = build_user_imports(
        [_row("", "No", "Email", "Acme"), _row("x@acme.com", "No", "Company", "  ")]
    )
    assert users == []
    assert skipped == 2


def test_duplicate_email_keeps_first_row_but_advances_counter():
    users, _ = build_user_imports(
        [
            _row("a@acme.com", company="Acme"),
            _row("A@ACME.COM", company="Acme"),
            _row("b@acme.com", company="Acme"),
        ]
    )
    assert [(u.email, u.password) for u in users] == [
        ("a@acme.com", "Acme1!"),
        ("b@acme.com", "Acme3!"),
    ]


def test_import_users_creates_password_accounts(store, tmp_path):
    contacts = tmp_path / "contacts.csv"
    contacts.write_text(
        HEADER + "a@acme.com,Ann,Lee,Acme Homes\n,,,\nnobody@x.com,,,\n",
        encoding="utf-8",
    )

    summary = import_users(store, contacts)

    assert (summary.imported, summary.updated, summary.skipped) == (1, 0, 1)
    user = store.get_user_by_email("a@acme.com", "password")
    assert user.open_id == "password-a@acme.com"
    assert user.password == "AcmeHomes1!"
    assert user.login_method == "password"
    assert user.role == "user"
    assert user.company == "Acme Homes"


def test_import_users_refreshes_existing_password_account(store, tmp_path):
    store.upsert_user(
        User(
            open_id="pw-7",
            email="a@acme.com",
            password="old",
            login_method="password",
            role="admin",
            company="Old Co",
        )
    )
    contacts = tmp_path / "contacts.csv"
    contacts.write_text(HEADER + "a@acme.com,Ann,,Acme Homes\n", encoding="utf-8")

    summary = import_users(store, contacts)

    assert (summary.imported, summary.updated) == (0, 1)
    user = store.get_user_by_open_id("pw-7")
    assert user.password == "AcmeHomes1!"
    assert user.company == "Acme Homes"
    assert user.role == "admin"
    assert store.get_user_by_open_id("password-a@acme.com") is None


def test_imported_user_can_log_in(portal, store, tmp_path):
    contacts = tmp_path / "contacts.csv"
    contacts.write_text(HEADER + "a@acme.com,Ann,Lee,Acme Homes\n", encoding="utf-8")
    import_users(store, contacts)

    user = portal.login("a@acme.com", "AcmeHomes1!")

    assert user.open_id == "password-a@acme.com"
    assert user.company == "Acme Homes"
    assert user.name == "Ann Lee"


def test_import_users_missing_file(store, tmp_path):
    with pytest.raises(ValidationError, match="Cannot read contacts file"):
        import_users(store, tmp_path / "missing.csv")


def test_import_users_reads_excel_bom(store, tmp_path):
    contacts = tmp_path / "contacts.csv"
    contacts.write_bytes(("\ufeff" + HEADER + "a@acme.com,,,Acme\n").encode("utf-8"))
    assert import_users(store, contacts).imported == 1

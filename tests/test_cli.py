"""Tests for the command line interface."""

from pathlib import Path

import pytest

from szamla.cli.main import cli


@pytest.fixture
def run(cli_runner, temp_db):
    """Invoke the CLI against the temporary database."""

    def invoke(*args):
        return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args])

    return invoke


@pytest.fixture
def configured(run):
    """Seller data and one customer, set up through the CLI."""
    result = run(
        "settings",
        "set",
        "company_name=Minta Kft.",
        "tax_number=12345678-2-42",
        "zip_code=1011",
        "city=Budapest",
        "address=Fő utca 1.",
    )
    assert result.exit_code == 0, result.output
    result = run("customer", "create", "Példa Kft.", "--tax-number", "87654321-2-13", "--city", "Szeged")
    assert result.exit_code == 0, result.output


def _create_invoice_with_item(run) -> None:
    assert run("invoice", "create", "Példa Kft.").exit_code == 0
    result = run("invoice", "add-item", "1", "Tanácsadás", "-q", "2", "-p", "1 000", "--unit", "óra")
    assert result.exit_code == 0, result.output


def test_help_does_not_need_database(cli_runner):
    result = cli_runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "invoice" in result.output
    assert "customer" in result.output


def test_customer_create_and_list(run):
    result = run("customer", "create", "Példa Kft.", "--tax-number", "87654321-2-13", "--payment-days", "15")
    assert result.exit_code == 0
    assert "Created customer 'Példa Kft.'" in result.output

    result = run("customer", "list")
    assert result.exit_code == 0
    assert "Példa Kft." in result.output
    assert "87654321-2-13" in result.output


def test_customer_create_duplicate(run):
    assert run("customer", "create", "Példa Kft.").exit_code == 0

    result = run("customer", "create", "Példa Kft.")

    assert result.exit_code == 1
    assert "already exists" in result.output


def test_customer_list_empty(run):
    result = run("customer", "list")

    assert result.exit_code == 0
    assert "No customers found" in result.output


def test_settings_show_masks_secrets(run):
    assert run("settings", "set", "billingo_api_key=supersecret1234").exit_code == 0

    result = run("settings", "show")

    assert result.exit_code == 0
    assert "supersecret" not in result.output
    assert "****1234" in result.output
    assert "INV-0001" in result.output


def test_settings_set_rejects_unknown_field(run):
    result = run("settings", "set", "colour=blue")

    assert result.exit_code == 1
    assert "Unknown setting 'colour'" in result.output


def test_settings_numbering(run):
    result = run("settings", "numbering", "--prefix", "SZ", "--next-number", "100")
    assert result.exit_code == 0
    assert "SZ-0100" in result.output

    result = run("settings", "numbering", "--next-number", "5")
    assert result.exit_code == 1
    assert "cannot be reused" in result.output


def test_invoice_create_add_item_and_show(run, configured):
    _create_invoice_with_item(run)

    result = run("invoice", "show", "1")

    assert result.exit_code == 0
    assert "(draft)" in result.output
    assert "Tanácsadás" in result.output
    assert "2 540.00 HUF" in result.output


def test_invoice_issue_and_export(run, configured, tmp_path):
    _create_invoice_with_item(run)
    output = tmp_path / "issued.xml"

    result = run("invoice", "issue", "1", "--output", str(output))
    assert result.exit_code == 0, result.output
    assert "INV-0001" in result.output
    assert output.read_bytes().startswith(b"<?xml")

    export = tmp_path / "export.xml"
    result = run("invoice", "export", "1", "-o", str(export))
    assert result.exit_code == 0
    assert export.read_bytes() == output.read_bytes()

    result = run("invoice", "show", "INV-0001")
    assert result.exit_code == 0
    assert "ISSUED" in result.output


def test_invoice_issue_without_items_fails(run, configured):
    assert run("invoice", "create", "Példa Kft.").exit_code == 0

    result = run("invoice", "issue", "1")

    assert result.exit_code == 1
    assert "no items" in result.output
    assert "INV-0001" in run("settings", "numbering").output


def test_invoice_lifecycle_commands(run, configured):
    _create_invoice_with_item(run)
    assert run("invoice", "issue", "1").exit_code == 0

    result = run("invoice", "mark-sent", "1", "NAV-TX-1")
    assert result.exit_code == 0
    assert "NAV-TX-1" in result.output

    result = run("invoice", "pay", "1", "--date", "2024-03-20")
    assert result.exit_code == 0
    assert "2024-03-20" in result.output

    result = run("invoice", "cancel", "1", "--reason", "Téves")
    assert result.exit_code == 1
    assert "cannot change from PAID" in result.output


def test_invoice_delete_only_drafts(run, configured):
    _create_invoice_with_item(run)
    assert run("invoice", "issue", "1").exit_code == 0
    assert run("invoice", "create", "Példa Kft.").exit_code == 0

    assert run("invoice", "delete", "2").exit_code == 0
    result = run("invoice", "delete", "1")
    assert result.exit_code == 1
    assert "cancel it instead" in result.output


def test_invoice_list_and_stats(run, configured):
    _create_invoice_with_item(run)
    assert run("invoice", "issue", "1").exit_code == 0
    assert run("invoice", "create", "Példa Kft.", "--issue-date", "2024-04-02").exit_code == 0

    result = run("invoice", "list")
    assert result.exit_code == 0
    assert "INV-0001" in result.output
    assert "(draft)" in result.output

    result = run("invoice", "list", "--status", "draft")
    assert "INV-0001" not in result.output

    result = run("invoice", "list", "--end-date", "2024-12-31")
    assert "INV-0001" not in result.output
    assert "(draft)" in result.output

    result = run("invoice", "stats")
    assert result.exit_code == 0
    assert "2 540.00" in result.output


def test_invoice_list_rejects_period_with_dates(run):
    result = run("invoice", "list", "--period", "this-month", "--start-date", "2024-01-01")

    assert result.exit_code == 1


def test_invoice_create_unknown_customer(run):
    result = run("invoice", "create", "Nincs Kft.")

    assert result.exit_code == 1
    assert "not found" in result.output


def test_invoice_download_draft_fails(run, configured, tmp_path):
    assert run("invoice", "create", "Példa Kft.").exit_code == 0

    result = run("invoice", "download", "1", "-o", str(tmp_path / "x.pdf"))

    assert result.exit_code == 1
    assert not Path(tmp_path / "x.pdf").exists()

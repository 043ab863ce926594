import pytest

from services.errors import InvalidFormatError
from services.spreadsheet_reader import is_spreadsheet_upload, read_spreadsheet, resolve_field

from conftest import cemig_row


def test_read_spreadsheet_returns_rows_keyed_by_header(make_xlsx):
    content = make_xlsx([cemig_row("A100"), cemig_row("B200", period="05/2025")])

    rows = read_spreadsheet(content)

    assert len(rows) == 2
    assert rows[0]["Instalação"] == "A100"
    assert rows[1]["Período"] == "05/2025"
    assert rows[0]["Consumo"] == 1000


def test_empty_cells_come_back_as_none(make_xlsx):
    rows = read_spreadsheet(make_xlsx([cemig_row("A100", Consumo=None)]))
    assert rows[0]["Consumo"] is None


def test_header_only_sheet_is_invalid(make_xlsx):
    content = make_xlsx([], columns=["Instalação", "Período", "Consumo"])
    with pytest.raises(InvalidFormatError) as exc:
        read_spreadsheet(content)
    assert exc.value.error_type == "invalid_format"
    assert "vazio" in exc.value.message


@pytest.mark.parametrize("payload", [b"", b"definitely not a workbook"])
def test_unreadable_payload_is_invalid(payload):
    with pytest.raises(InvalidFormatError):
        read_spreadsheet(payload)


def test_resolve_field_uses_first_alias_present():
    row = {"Instalacao": "A100", "Periodo": "04/2025", "Geracao": 5, "Compensacao": "3,5"}
    assert resolve_field(row, "installation_number") == "A100"
    assert resolve_field(row, "period") == "04/2025"
    assert resolve_field(row, "generation") == 5
    assert resolve_field(row, "compensation") == "3,5"


def test_resolve_field_prefers_earlier_alias():
    row = {"Recebido": 1, "Recebimento": 2}
    assert resolve_field(row, "received") == 2


def test_resolve_field_matches_case_and_accent_variants():
    row = {"INSTALAÇÃO ": "A100", "periodo": "04/2025", "saldo atual": 7}
    assert resolve_field(row, "installation_number") == "A100"
    assert resolve_field(row, "period") == "04/2025"
    assert resolve_field(row, "current_balance") == 7


def test_resolve_field_keeps_similar_headers_apart():
    row = {"Período Saldo a Expirar": "12/2025", "Quota (%)": 50}
    assert resolve_field(row, "period") is None
    assert resolve_field(row, "expiring_balance_period") == "12/2025"
    assert resolve_field(row, "quota") == 50


def test_resolve_field_default():
    assert resolve_field({}, "consumption", default=0) == 0


@pytest.mark.parametrize("content_type, name, expected", [
    ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "x.bin", True),
    ("application/vnd.ms-excel", None, True),
    ("application/octet-stream", "Consulta_Saldo_GD.XLSX", True),
    ("text/csv", "data.csv", False),
])
def test_is_spreadsheet_upload(content_type, name, expected):
    assert is_spreadsheet_upload(content_type, name) is expected

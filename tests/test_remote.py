import pytest

from punchclock.remote.sheet import RemoteRow, parse_rows, unwrap_avatar, wrap_avatar


def test_avatar_formula_wrapping():
    assert wrap_avatar("https://img/a.png") == '=IMAGE("https://img/a.png")'
    assert unwrap_avatar('=IMAGE("https://img/a.png")') == "https://img/a.png"
    assert unwrap_avatar("https://img/a.png") == "https://img/a.png"
    assert wrap_avatar("") == ""


def test_row_from_values_pads_short_rows():
    row = RemoteRow.from_values(["Alice", "Ally", "", "15/01/2025 08:00:00"])

    assert row.employee_name == "Alice"
    assert row.source_display_name == "Ally"
    assert row.clock_out == ""
    assert row.working_hours == 0.0
    assert row.to_record_fields()['clock_out'] is None


@pytest.mark.parametrize("values", [
    ["", "", "", "15/01/2025 08:00:00"],
    ["Alice", "", "", ""],
    ["Alice", "", "", "15/01/2025 08:00:00", "", "", "", "", "", "", "lots"],
    "Alice",
])
def test_malformed_rows_raise(values):
    with pytest.raises(ValueError):
        RemoteRow.from_values(values)


def test_parse_rows_skips_malformed():
    rows = parse_rows([["Alice", "", "", "15/01/2025 08:00:00"], ["", "x"], None])

    assert [r.employee_name for r in rows] == ["Alice"]


def test_working_hours_written_with_two_decimals():
    row = RemoteRow(employee_name="Alice", clock_in="15/01/2025 08:00:00", working_hours=8.5)

    values = row.to_values()

    assert len(values) == 11
    assert values[10] == "8.50"

from __future__ import annotations

import pandas as pd
import pytest

from grooming_backup.excel.reader import WorkbookReadError, normalize_sheet, read_workbook


def test_read_workbook_all_sheets(workbook_factory):
    content = workbook_factory({"Customer": [["Naam"], ["Jansen"]], "Dog": [["Name"], ["Bello"]]})
    dfs = read_workbook(content)
    assert list(dfs) == ["Customer", "Dog"]
    assert dfs["Customer"].shape == (2, 1)


def test_read_workbook_keeps_na_strings(workbook_factory):
    content = workbook_factory({"Customer": [["Naam"], ["NA"]]})
    sheet = normalize_sheet(read_workbook(content)["Customer"], "Customer")
    assert sheet.rows == [(2, ["NA"])]


def test_read_workbook_invalid_bytes():
    with pytest.raises(WorkbookReadError):
        read_workbook(b"this is not an xlsx file")


def test_normalize_sheet_header_and_row_numbers(workbook_factory):
    content = workbook_factory(
        {"Customer": [[" Naam ", "Notities"], ["Jansen", None], [None, None], ["De Vries", "vip"]]}
    )
    sheet = normalize_sheet(read_workbook(content)["Customer"], "Customer")
    assert sheet.columns == ["Naam", "Notities"]
    assert sheet.has_header
    # the blank row 3 is skipped, numbering follows the worksheet
    assert sheet.rows == [(2, ["Jansen", None]), (4, ["De Vries", "vip"])]


def test_normalize_sheet_empty():
    sheet = normalize_sheet(pd.DataFrame(), "Dog")
    assert sheet.columns == [] and sheet.rows == []
    assert not sheet.has_header


def test_normalize_sheet_blank_header():
    df = pd.DataFrame([[None, ""], ["a", "b"]], dtype=object)
    sheet = normalize_sheet(df, "Dog")
    assert sheet.columns == ["", ""]
    assert not sheet.has_header

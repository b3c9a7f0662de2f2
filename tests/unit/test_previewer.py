from __future__ import annotations

import json
from datetime import datetime

import pytest

from grooming_backup.services.previewer import PreviewError, preview_workbook


def test_preview_sample_workbook(sample_workbook):
    result = preview_workbook(sample_workbook)
    assert list(result.rows_by_table) == ["Customer", "Dog", "Appointment"]
    assert result.validation_results == ()
    customer = result.rows_by_table["Customer"][0]
    assert customer.row_number == 2
    assert customer.values["Naam"] == "Jansen"
    assert customer.values["CreatedOn"] == "2023-05-01 09:30:00"
    dog = result.rows_by_table["Dog"][0].values
    assert dog["CustomerId"] == 1
    assert dog["Birthday"] == "2019-03-14"
    appointment = result.rows_by_table["Appointment"][0].values
    assert appointment["TimeStart"] == "09:00:00"
    assert appointment["TimeEnd"] == "10:30:00"
    assert appointment["Date"] == "2024-02-01"
    assert appointment["IsPaidInCash"] is True


def test_time_fraction_cell(workbook_factory):
    content = workbook_factory(
        {
            "Appointment": [
                ["Date", "TimeStart", "TimeEnd", "CustomerId", "AppointmentStatusId"],
                [datetime(2024, 3, 1), 0.5, 0.75, 3, "Pln"],
            ]
        }
    )
    values = preview_workbook(content).rows_by_table["Appointment"][0].values
    assert values["TimeStart"] == "12:00:00"
    assert values["TimeEnd"] == "18:00:00"


def test_aliased_boolean_header_is_coerced(workbook_factory):
    content = workbook_factory(
        {
            "Appointment": [
                ["Date", "TimeStart", "TimeEnd", "CustomerId", "AppointmentStatusId", "is_paid_in_cash"],
                [datetime(2024, 3, 1), "09:00", "10:00", 3, "Pln", "yes"],
            ]
        }
    )
    result = preview_workbook(content)
    values = result.rows_by_table["Appointment"][0].values
    assert values["IsPaidInCash"] is True
    assert "is_paid_in_cash" not in values
    assert result.validation_results == ()


def test_association_headers_use_column_names(workbook_factory):
    content = workbook_factory({"AppointmentDog": [["appointmentid", "DOGID"], [1, 2]]})
    result = preview_workbook(content)
    assert result.rows_by_table["AppointmentDog"][0].values == {"AppointmentId": 1, "DogId": 2}
    assert result.validation_results == ()


def test_dog_without_customer_column(workbook_factory):
    content = workbook_factory({"Dog": [["Name", "Breed"], ["Bello", "Poedel"]]})
    result = preview_workbook(content)
    assert len(result.validation_results) == 1
    diagnostic = result.validation_results[0]
    assert diagnostic.table == "Dog" and diagnostic.row_number == 2
    assert [e.field for e in diagnostic.errors] == ["CustomerId"]
    assert "Bello" in diagnostic.errors[0].error
    # invalid rows are still staged
    assert len(result.rows_by_table["Dog"]) == 1


def test_customer_reference_read_from_text(workbook_factory):
    content = workbook_factory({"Dog": [["Name", "customer_id"], ["Bello", "12"], ["Max", 7]]})
    rows = preview_workbook(content).rows_by_table["Dog"]
    assert [r.values["CustomerId"] for r in rows] == [12, 7]
    assert all("customer_id" not in r.values for r in rows)


def test_sheet_and_header_names_are_case_insensitive(workbook_factory):
    content = workbook_factory({"customer": [["naam", "EMAILADRES"], ["Jansen", "j@example.nl"]]})
    result = preview_workbook(content)
    assert result.rows_by_table["Customer"][0].values == {"Naam": "Jansen", "Emailadres": "j@example.nl"}
    assert result.rows_by_table["Customer"][0].sheet_name == "customer"


def test_skipped_and_missing_sheets(workbook_factory):
    content = workbook_factory({"Customer": [["Naam"], ["Jansen"]], "Notes": [["x"], ["y"]]})
    result = preview_workbook(content)
    assert result.skipped_sheets == ("Notes",)
    assert "Customer" not in result.missing_sheets
    assert "ServiceAppointmentDog" in result.missing_sheets
    assert len(result.missing_sheets) == 6


def test_sheet_without_header_is_skipped(workbook_factory):
    content = workbook_factory({"Customer": [["Naam"], ["Jansen"]], "Dog": []})
    result = preview_workbook(content)
    assert "Dog" not in result.rows_by_table
    assert "Dog" not in result.missing_sheets


def test_blank_rows_skipped_and_row_numbers_kept(workbook_factory):
    content = workbook_factory({"Customer": [["Naam"], ["Jansen"], [None], ["De Vries"]]})
    rows = preview_workbook(content).rows_by_table["Customer"]
    assert [(r.row_number, r.values["Naam"]) for r in rows] == [(2, "Jansen"), (4, "De Vries")]


def test_appointment_missing_times_diagnostic(workbook_factory):
    content = workbook_factory(
        {
            "Appointment": [
                ["Date", "TimeStart", "TimeEnd", "CustomerId", "AppointmentStatusId"],
                [datetime(2024, 3, 1), None, None, 3, "Pln"],
            ]
        }
    )
    result = preview_workbook(content)
    fields = [e.field for e in result.validation_results[0].errors]
    assert fields == ["TimeStart", "TimeEnd"]


def test_preview_response_is_json_serializable(sample_workbook):
    body = preview_workbook(sample_workbook).to_response()
    assert body["message"] == "Backup preview generated successfully"
    assert set(body) == {"message", "preview", "validationResults", "skippedSheets", "missingSheets"}
    json.dumps(body)


def test_unreadable_workbook():
    with pytest.raises(PreviewError):
        preview_workbook(b"garbage")

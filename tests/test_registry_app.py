import logging
from pathlib import Path

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

import record_store
import timesheet_report
from registry_errors import MalformedRow
from registry_models import Employee

APP = str(Path(__file__).resolve().parent.parent / "registry_app.py")


@pytest.fixture
def rendered(monkeypatch, store):
    """Runs the app against the test store; PDF renderers are replaced by counters."""
    monkeypatch.setattr(record_store, "build_record_store", lambda: store)
    monkeypatch.setattr(logging.getLogger(), "_registry_configured", True, raising=False)
    calls = {"timesheet": 0, "directory": 0}

    def fake_timesheet(employee, year, month, header_html=None):
        calls["timesheet"] += 1
        return b"%PDF-timesheet"

    def fake_directory(employees, header_html=None):
        calls["directory"] += 1
        return b"%PDF-directory"

    monkeypatch.setattr(timesheet_report, "timesheet_pdf", fake_timesheet)
    monkeypatch.setattr(timesheet_report, "employee_directory_pdf", fake_directory)
    st.cache_resource.clear()
    st.cache_data.clear()
    yield calls
    st.cache_resource.clear()
    st.cache_data.clear()


def _app():
    return AppTest.from_file(APP, default_timeout=30)


def test_unreadable_records_keep_sidebar(rendered, store, monkeypatch):
    def broken():
        raise MalformedRow("Row 1: unknown shift 'Evening'")

    monkeypatch.setattr(store, "list_employees", broken)
    at = _app().run()
    assert not at.exception
    assert at.sidebar.header[0].value == "⚙️ Database"
    assert any("Could not read the employees" in e.value for e in at.error)


def test_update_of_vanished_employee_warns(rendered, store, monkeypatch):
    store.add_employee(Employee(name="Ana", registration="1", role="Nurse"))
    at = _app().run()
    monkeypatch.setattr(store, "update_employee", lambda employee: False)

    next(b for b in at.button if b.label == "Update").click().run()
    assert not at.exception
    assert any("no longer exists" in w.value for w in at.warning)
    assert not any("Employee updated." in s.value for s in at.success)


def test_pdfs_rendered_once_per_input(rendered, store):
    store.add_employee(Employee(name="Ana", registration="1", role="Nurse"))
    at = _app().run()
    at.run()
    assert not at.exception
    assert rendered == {"timesheet": 1, "directory": 1}

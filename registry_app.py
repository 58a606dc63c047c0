import logging
from datetime import date
from io import BytesIO

import pandas as pd
import streamlit as st

import registry_config as cfg
from bulk_import import import_frame
from registry_errors import DuplicateKey, ImportDecodeFailure, RegistryError
from registry_models import Employee, Shift
from record_store import build_record_store, filter_employees
from timesheet_report import MONTHS, employee_directory_pdf, timesheet_filename, timesheet_pdf

cfg.setup_logging()
logger = logging.getLogger("registry_app")


@st.cache_resource
def get_store():
    # one manager per server process, shared by every browser session
    return build_record_store()


def employees_frame(employees) -> pd.DataFrame:
    rows = [{**e.to_dict(), "shift": e.shift.label} for e in employees]
    return pd.DataFrame(rows, columns=["id", "name", "registration", "role", "shift"])


def df_to_excel_bytes(df: pd.DataFrame) -> bytes:
    output = BytesIO()
    with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
        df.to_excel(writer, sheet_name="Employees", index=False)
    return output.getvalue()


def employee_label(e: Employee) -> str:
    return f"{e.name} ({e.registration})"


def employee_from_dict(record: dict) -> Employee:
    return Employee(**{**record, "shift": Shift(record["shift"])})


# xhtml2pdf is slow; reruns with the same inputs reuse the rendered bytes.
# Records are passed as plain dicts so the cache can hash them.
@st.cache_data(show_spinner="Rendering PDF...")
def cached_timesheet_pdf(record: dict, year: int, month: int, header_html):
    return timesheet_pdf(employee_from_dict(record), year, month, header_html)


@st.cache_data(show_spinner="Rendering PDF...")
def cached_directory_pdf(records: list, header_html):
    return employee_directory_pdf([employee_from_dict(r) for r in records], header_html)


st.set_page_config(page_title="Employee Registry (Local)", page_icon="🗂️", layout="wide")
st.title("🗂️ Employee Registry")
st.caption("SQLite database kept in memory and saved to local storage after every change")

store = get_store()

with st.sidebar:
    st.header("⚙️ Database")
    local = store.codec.store
    st.write(f"Local storage: `{local.path}`")
    used = local.used_bytes()
    st.progress(min(used / local.quota_bytes, 1.0), text=f"{used / 1024:.0f} KB of {local.quota_bytes / 1024:.0f} KB")
    if used >= cfg.SNAPSHOT_WARN_BYTES:
        st.warning("Local storage is almost full. Download a .sqlite backup.")

    exported = store.export_database()
    st.download_button(
        "⬇️ Save / download .sqlite",
        data=exported.data,
        file_name=exported.filename,
        mime=exported.mime
    )

    up = st.file_uploader("Import .sqlite", type=["sqlite", "db"])
    if up is not None and st.button("Replace database with this file"):
        try:
            count = store.import_database(up.getvalue())
            st.success(f"Database imported ({count} employees).")
            st.rerun()
        except ImportDecodeFailure as e:
            logger.warning(f"Import rejected: {e}")
            st.error("Import failed. Make sure the file is a valid .sqlite database.")

    st.divider()
    xl = st.file_uploader("Bulk import from Excel", type=["xlsx"])
    if xl is not None and st.button("Import employees"):
        try:
            added, skipped = import_frame(pd.read_excel(xl), store)
            st.success(f"Imported {added} employees.")
            if skipped:
                st.warning(f"Skipped existing registrations: {', '.join(skipped)}")
        except ValueError as e:
            st.error(f"Import failed: {e}")

# the sidebar stays usable when the records cannot be read, so a good file can be imported
try:
    employees = store.list_employees()
except RegistryError as e:
    logger.exception("Failed to load employees")
    st.error(f"Could not read the employees: {e}. Import a valid .sqlite file from the sidebar.")
    employees = []

tab_emp, tab_sheet, tab_header = st.tabs(["👥 Employees", "🗓️ Timesheet", "📝 Report header"])

with tab_emp:
    st.subheader("➕ Add Employee")
    with st.form("add_employee_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        with c1:
            name = st.text_input("Full name", placeholder="Jane Doe", max_chars=200)
        with c2:
            registration = st.text_input("Registration", placeholder="2024001", max_chars=50)
        c3, c4 = st.columns(2)
        with c3:
            role = st.text_input("Role", placeholder="Senior Developer", max_chars=200)
        with c4:
            shift = st.selectbox("Shift", list(Shift), format_func=lambda s: s.label, index=3)

        submitted = st.form_submit_button("Save Employee")
        if submitted:
            if not name.strip() or not registration.strip() or not role.strip():
                st.error("Please fill Name, Registration, and Role.")
            else:
                try:
                    store.add_employee(Employee(name=name, registration=registration, role=role, shift=shift))
                    st.success("Employee saved.")
                    employees = store.list_employees()
                except DuplicateKey:
                    st.error("This registration is already in use.")
                except RegistryError as e:
                    logger.exception("Add failed")
                    st.error(f"Could not save the employee: {e}")

    st.subheader(f"📋 Employees ({len(employees)})")
    query = st.text_input("Search", placeholder="Name, registration or role")
    shown = filter_employees(employees, query)
    if not shown:
        st.info("No employees found.")
    else:
        df = employees_frame(shown)
        st.dataframe(df, use_container_width=True, hide_index=True)

        c1, c2, c3 = st.columns(3)
        with c1:
            st.download_button("⬇️ CSV", data=df.to_csv(index=False).encode("utf-8"),
                               file_name="employees.csv", mime="text/csv")
        with c2:
            st.download_button("⬇️ Excel", data=df_to_excel_bytes(df), file_name="employees.xlsx",
                               mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        with c3:
            st.download_button("⬇️ Directory PDF",
                               data=cached_directory_pdf([e.to_dict() for e in shown],
                                                         store.get_config(cfg.REPORT_HEADER_KEY)),
                               file_name="employee_directory.pdf", mime="application/pdf")

        st.subheader("✏️ Edit / Delete")
        selected = st.selectbox("Employee", shown, format_func=employee_label, key="edit_select")
        with st.form("edit_employee_form"):
            c1, c2 = st.columns(2)
            with c1:
                e_name = st.text_input("Full name", value=selected.name)
                e_role = st.text_input("Role", value=selected.role)
            with c2:
                e_registration = st.text_input("Registration", value=selected.registration)
                e_shift = st.selectbox("Shift", list(Shift), format_func=lambda s: s.label,
                                       index=list(Shift).index(selected.shift))
            b1, b2 = st.columns(2)
            with b1:
                save = st.form_submit_button("Update")
            with b2:
                delete = st.form_submit_button("Delete")
            confirm = st.checkbox("Confirm delete")

        if save:
            try:
                updated = store.update_employee(Employee(id=selected.id, name=e_name, registration=e_registration,
                                                         role=e_role, shift=e_shift))
                if updated:
                    st.success("Employee updated.")
                    st.rerun()
                else:
                    st.warning("This employee no longer exists. It may have been deleted in another session.")
            except DuplicateKey:
                st.error("This registration is already in use.")
            except (RegistryError, ValueError) as e:
                logger.exception("Update failed")
                st.error(f"Could not update the employee: {e}")
        if delete:
            if not confirm:
                st.warning("Tick 'Confirm delete' to remove this employee.")
            else:
                try:
                    store.delete_employee(selected.id)
                    st.success("Employee deleted.")
                    st.rerun()
                except RegistryError as e:
                    logger.exception("Delete failed")
                    st.error(f"Could not delete the employee: {e}")

with tab_sheet:
    st.subheader("🗓️ Monthly attendance sheet")
    if not employees:
        st.info("Add an employee first.")
    else:
        today = date.today()
        c1, c2, c3 = st.columns(3)
        with c1:
            who = st.selectbox("Employee", employees, format_func=employee_label, key="sheet_select")
        with c2:
            month = st.selectbox("Reference month", range(1, 13), index=today.month - 1,
                                 format_func=lambda m: MONTHS[m - 1])
        with c3:
            year = st.number_input("Year", min_value=1900, max_value=2100, value=today.year, step=1)
        st.caption("The sheet lists every day of the month with blank IN/OUT fields; weekends are struck out.")
        st.download_button(
            "🖨️ Generate timesheet PDF",
            data=cached_timesheet_pdf(who.to_dict(), int(year), month, store.get_config(cfg.REPORT_HEADER_KEY)),
            file_name=timesheet_filename(who, month),
            mime="application/pdf"
        )

with tab_header:
    st.subheader("📝 Report header")
    st.caption("HTML shown at the top of every generated PDF (logo, institution name, ...).")
    current = store.get_config(cfg.REPORT_HEADER_KEY) or ""
    with st.form("header_form"):
        header_html = st.text_area("Header HTML", value=current, height=200)
        if st.form_submit_button("Save header"):
            store.set_config(cfg.REPORT_HEADER_KEY, header_html)
            st.success("Header saved.")
    if current:
        st.markdown(current, unsafe_allow_html=True)

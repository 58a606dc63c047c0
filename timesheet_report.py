"""
PDF reports
-----------
Monthly individual attendance sheet (blank IN/OUT columns to be filled by
hand, weekends pre-struck) and the employee directory. HTML is rendered with
jinja2 and converted by xhtml2pdf.
"""
import calendar
import io
import logging
from datetime import date
from typing import List, Optional, Sequence

from jinja2 import Environment, select_autoescape
from xhtml2pdf import pisa

from registry_models import Employee

logger = logging.getLogger(__name__)

MONTHS = [calendar.month_name[m] for m in range(1, 13)]
TIME_COLUMNS = ["IN", "OUT (LUNCH)", "RETURN", "OUT"]
WEEKEND_MARK = "---"
WEEKEND_LABEL = "SAT/SUN"

_env = Environment(autoescape=select_autoescape(default_for_string=True))

BASE_STYLE = """
    @page { size: A4; margin: 1.2cm; }
    body { font-family: Helvetica, Arial, sans-serif; font-size: 9pt; color: #000; }
    .custom-header { margin-bottom: 8px; }
    .title { font-size: 15pt; font-weight: bold; text-align: center; margin-bottom: 6px; }
    .info { border: 1px solid #000; padding: 4px 6px; margin-bottom: 8px; }
    .info td { border: none; text-align: left; padding: 2px; }
    table.grid { width: 100%; border-collapse: collapse; }
    table.grid th { background-color: #f0f0f0; font-weight: bold; border: 1px solid #000; padding: 3px; }
    table.grid td { border: 1px solid #000; padding: 3px; text-align: center; }
    tr.weekend td { background-color: #f5f5f5; }
    .signatures { margin-top: 30px; width: 100%; }
    .signatures td { text-align: center; padding-top: 4px; border-top: 1px solid #000; }
    .meta { font-size: 9pt; color: #666; text-align: center; }
"""

TIMESHEET_TEMPLATE = _env.from_string("""
<html>
<head><style>{{ style | safe }}</style></head>
<body>
    {% if header_html %}<div class="custom-header">{{ header_html | safe }}</div>{% endif %}
    <div class="title">INDIVIDUAL ATTENDANCE SHEET</div>
    <table class="info">
        <tr>
            <td>EMPLOYEE: {{ employee.name | upper }}</td>
            <td>SHIFT: {{ employee.shift.label }}</td>
        </tr>
        <tr>
            <td>REGISTRATION: {{ employee.registration }}</td>
            <td>REFERENCE MONTH: {{ month_name | upper }}</td>
        </tr>
        <tr>
            <td>ROLE: {{ employee.role }}</td>
            <td>YEAR: {{ year }}</td>
        </tr>
    </table>
    <table class="grid">
        <thead>
            <tr>
                <th>DAY</th>
                {% for col in time_columns %}<th>{{ col }}</th>{% endfor %}
                <th>SIGNATURE</th>
            </tr>
        </thead>
        <tbody>
            {% for row in rows %}
            <tr{% if row.weekend %} class="weekend"{% endif %}>
                <td>{{ row.day }}</td>
                {% for cell in row.times %}<td>{{ cell }}</td>{% endfor %}
                <td>{{ row.signature }}</td>
            </tr>
            {% endfor %}
        </tbody>
    </table>
    <table class="signatures">
        <tr>
            <td>Employee signature</td>
            <td style="border-top: none;"></td>
            <td>Supervisor signature</td>
        </tr>
    </table>
</body>
</html>
""")

DIRECTORY_TEMPLATE = _env.from_string("""
<html>
<head><style>{{ style | safe }}</style></head>
<body>
    {% if header_html %}<div class="custom-header">{{ header_html | safe }}</div>{% endif %}
    <div class="title">Employee Directory</div>
    <div class="meta">Total employees: {{ employees | length }} | Generated on: {{ generated_on }}</div>
    <table class="grid">
        <thead>
            <tr><th>Name</th><th>Registration</th><th>Role</th><th>Shift</th></tr>
        </thead>
        <tbody>
            {% for emp in employees %}
            <tr>
                <td style="text-align: left; font-weight: bold;">{{ emp.name }}</td>
                <td>{{ emp.registration }}</td>
                <td>{{ emp.role }}</td>
                <td>{{ emp.shift.label }}</td>
            </tr>
            {% endfor %}
        </tbody>
    </table>
</body>
</html>
""")


def month_rows(year: int, month: int) -> List[dict]:
    """One row per day of the month; weekend rows are pre-struck."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    days = calendar.monthrange(year, month)[1]
    rows = []
    for d in range(1, days + 1):
        day = date(year, month, d)
        weekend = day.weekday() >= 5
        rows.append({
            "day": f"{d:02d} ({calendar.day_abbr[day.weekday()]})",
            "weekend": weekend,
            "times": [WEEKEND_MARK if weekend else ""] * len(TIME_COLUMNS),
            "signature": WEEKEND_LABEL if weekend else "",
        })
    return rows


def render_timesheet_html(employee: Employee, year: int, month: int, header_html: Optional[str] = None) -> str:
    return TIMESHEET_TEMPLATE.render(
        style=BASE_STYLE,
        header_html=header_html,
        employee=employee,
        month_name=MONTHS[month - 1],
        year=year,
        time_columns=TIME_COLUMNS,
        rows=month_rows(year, month),
    )


def render_directory_html(employees: Sequence[Employee], header_html: Optional[str] = None,
                          generated_on: Optional[date] = None) -> str:
    generated_on = generated_on or date.today()
    return DIRECTORY_TEMPLATE.render(
        style=BASE_STYLE,
        header_html=header_html,
        employees=list(employees),
        generated_on=generated_on.strftime("%d %B %Y"),
    )


def html_to_pdf(html: str) -> bytes:
    result = io.BytesIO()
    status = pisa.CreatePDF(io.StringIO(html), dest=result)
    if status.err:
        raise ValueError(f"PDF generation failed with {status.err} error(s)")
    return result.getvalue()


def timesheet_pdf(employee: Employee, year: int, month: int, header_html: Optional[str] = None) -> bytes:
    pdf = html_to_pdf(render_timesheet_html(employee, year, month, header_html))
    logger.info(f"Generated timesheet for {employee.registration} {MONTHS[month - 1]} {year}")
    return pdf


def timesheet_filename(employee: Employee, month: int) -> str:
    return f"timesheet_{employee.registration}_{MONTHS[month - 1]}.pdf"


def employee_directory_pdf(employees: Sequence[Employee], header_html: Optional[str] = None) -> bytes:
    return html_to_pdf(render_directory_html(employees, header_html))

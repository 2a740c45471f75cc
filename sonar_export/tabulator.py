"""Issue → spreadsheet conversion.

Functions:
    build_rows(base_url, project_key, issues)       -> list[ExportRow]
    build_workbook(base_url, project_key, issues)   -> bytes  (.xlsx)
"""

import io
import logging

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from sonar_export.models import ExportRow, Hyperlink, IssueRecord

logger = logging.getLogger(__name__)

SHEET_TITLE = "SonarQube Issues"

# (header, width) in output order
COLUMNS: tuple[tuple[str, int], ...] = (
    ("Key",                20),
    ("Type",               15),
    ("Rule",               15),
    ("Severity",           15),
    ("Component",          40),
    ("Line",               40),
    ("Message",            50),
    ("Status",             15),
    ("Resolution",         15),
    ("Creation Date",      20),
    ("Update Date",        20),
    ("Number",             20),
    ("Assessment Path",    50),
    ("Assessment Rule",    50),
    ("Assessment Message", 50),
    ("Link",               20),
)


# ---------------------------------------------------------------------------
# Column derivations
# ---------------------------------------------------------------------------

def line_range(issue: IssueRecord) -> str:
    return f"{issue.start_line}-{issue.end_line}"


def assessment_path(issue: IssueRecord, project_key: str) -> str:
    """Component path relative to the project, with its line or line range.

    ``proj:src/Foo.java`` at lines 10–10 gives ``src/Foo.java:10``;
    at lines 10–15 it gives ``src/Foo.java:10-15``.
    """
    path = issue.component.removeprefix(f"{project_key}:")
    suffix = f":{issue.start_line}"
    if issue.end_line != issue.start_line:
        suffix += f"-{issue.end_line}"
    return path + suffix


def issue_url(base_url: str, issue: IssueRecord) -> str:
    return f"{base_url}/project/issues?open={issue.key}&id={issue.project}"


def build_row(base_url: str, project_key: str, issue: IssueRecord, number: int) -> ExportRow:
    url = issue_url(base_url, issue)
    return ExportRow(
        key=issue.key,
        type=issue.type,
        rule=issue.rule,
        severity=issue.severity,
        component=issue.component,
        line=line_range(issue),
        message=issue.message,
        status=issue.status,
        resolution=issue.resolution,
        creation_date=issue.creation_date,
        update_date=issue.update_date,
        number=f"{number}.",
        assessment_path=assessment_path(issue, project_key),
        assessment_rule=f"(Rule {issue.rule}) {issue.message}",
        # Same value as severity.
        assessment_message=issue.severity,
        link=Hyperlink(text=url, target=url),
    )


def build_rows(base_url: str, project_key: str, issues: list[IssueRecord]) -> list[ExportRow]:
    """One row per issue, numbered from 1, in input order."""
    base_url = base_url.rstrip("/")
    return [
        build_row(base_url, project_key, issue, number)
        for number, issue in enumerate(issues, start=1)
    ]


# ---------------------------------------------------------------------------
# Workbook
# ---------------------------------------------------------------------------

def _cell_text(value):
    """Drop control characters that cannot be stored in a worksheet."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def build_workbook(base_url: str, project_key: str, issues: list[IssueRecord]) -> bytes:
    """Render *issues* into a single-sheet .xlsx document and return its bytes."""
    rows = build_rows(base_url, project_key, issues)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE

    sheet.append([header for header, _ in COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for index, (_, width) in enumerate(COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    link_column = len(COLUMNS)
    for row in rows:
        sheet.append([_cell_text(value) for value in row.values()])
        # Issue text is never a formula, even when it starts with "="
        for cell in sheet[sheet.max_row]:
            if isinstance(cell.value, str):
                cell.data_type = "s"
        link_cell = sheet.cell(row=sheet.max_row, column=link_column)
        link_cell.hyperlink = row.link.target
        link_cell.style = "Hyperlink"

    buffer = io.BytesIO()
    workbook.save(buffer)
    logger.debug("Built workbook for %s with %d rows", project_key, len(rows))
    return buffer.getvalue()

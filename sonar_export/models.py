"""Data models for the issue export.

Contains:
    - IssueRecord    one issue as returned by ``/api/issues/search``
    - Hyperlink      display text + target of a link cell
    - ExportRow      one flattened spreadsheet row
    - FetchState     pagination accumulator, local to one fetch
    - ExportRequest  the three inbound fields of an export
"""

from dataclasses import dataclass, field
from typing import Any

from sonar_export.errors import DataShapeError, ValidationError


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IssueRecord:
    key: str
    type: str
    rule: str
    severity: str
    component: str
    start_line: int
    end_line: int
    message: str
    status: str
    resolution: str | None
    creation_date: str
    update_date: str
    project: str

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "IssueRecord":
        """Build a record from a raw SonarQube issue.

        Raises:
            DataShapeError: if ``textRange`` or its line numbers are missing.
        """
        text_range = raw.get("textRange")
        if not isinstance(text_range, dict):
            raise DataShapeError(
                f"Issue '{raw.get('key', '?')}' has no textRange, cannot derive its line range."
            )
        start = text_range.get("startLine")
        end = text_range.get("endLine")
        if start is None or end is None:
            raise DataShapeError(
                f"Issue '{raw.get('key', '?')}' has an incomplete textRange: {text_range!r}"
            )

        return cls(
            key=raw.get("key", ""),
            type=raw.get("type", ""),
            rule=raw.get("rule", ""),
            severity=raw.get("severity", ""),
            component=raw.get("component", ""),
            start_line=int(start),
            end_line=int(end),
            message=raw.get("message", ""),
            status=raw.get("status", ""),
            resolution=raw.get("resolution"),
            creation_date=raw.get("creationDate", ""),
            update_date=raw.get("updateDate", ""),
            project=raw.get("project", ""),
        )


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Hyperlink:
    text: str
    target: str


@dataclass(frozen=True)
class ExportRow:
    key: str
    type: str
    rule: str
    severity: str
    component: str
    line: str
    message: str
    status: str
    resolution: str | None
    creation_date: str
    update_date: str
    number: str
    assessment_path: str
    assessment_rule: str
    assessment_message: str
    link: Hyperlink

    def values(self) -> list[Any]:
        """Cell values in column order; the link contributes its display text."""
        return [
            self.key, self.type, self.rule, self.severity, self.component,
            self.line, self.message, self.status, self.resolution,
            self.creation_date, self.update_date, self.number,
            self.assessment_path, self.assessment_rule, self.assessment_message,
            self.link.text,
        ]


# ---------------------------------------------------------------------------
# Pagination state
# ---------------------------------------------------------------------------

@dataclass
class FetchState:
    page_size: int
    page: int = 1
    has_more: bool = True
    issues: list[IssueRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Inbound request
# ---------------------------------------------------------------------------

_REQUIRED_FIELDS = ("sonarUrl", "token", "projectKey")


@dataclass(frozen=True)
class ExportRequest:
    sonar_url: str
    token: str
    project_key: str

    @property
    def base_url(self) -> str:
        return self.sonar_url.rstrip("/")

    @classmethod
    def from_payload(cls, payload: Any) -> "ExportRequest":
        """Validate an inbound payload carrying ``sonarUrl``, ``token`` and ``projectKey``.

        Raises:
            ValidationError: if the payload is not a mapping, or a field is
                             missing, blank, or neither a string nor a number.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        values: dict[str, str] = {}
        missing: list[str] = []
        invalid: list[str] = []
        for name in _REQUIRED_FIELDS:
            value = payload.get(name)
            # Numeric keys and tokens are accepted as their text form
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
            elif not isinstance(value, str):
                invalid.append(name)
            else:
                values[name] = value.strip()

        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if invalid:
            raise ValidationError(f"Fields must be non-empty strings: {', '.join(invalid)}")

        return cls(
            sonar_url=values["sonarUrl"],
            token=values["token"],
            project_key=values["projectKey"],
        )

"""Export request boundary.

``export_issues`` takes the inbound payload (``sonarUrl``, ``token``,
``projectKey``), runs fetch → tabulate and turns every outcome into an
``ExportResponse``: the workbook on success, a JSON error body otherwise.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sonar_export.client import SonarClient, SonarClientError
from sonar_export.config import FetchSettings
from sonar_export.errors import ExportError
from sonar_export.models import ExportRequest
from sonar_export.tabulator import build_workbook

logger = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FILENAME = "sonarqube-issues.xlsx"


@dataclass
class ExportResponse:
    status_code: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @classmethod
    def error(cls, message: str, status_code: int) -> "ExportResponse":
        return cls(
            status_code=status_code,
            body=json.dumps({"error": message}).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )


def run_export(request: ExportRequest, settings: FetchSettings | None = None) -> bytes:
    """Fetch every issue for the request's project and return the workbook bytes.

    Exceptions propagate unchanged.
    """
    settings = settings or FetchSettings()
    client = SonarClient(
        url=request.sonar_url,
        token=request.token,
        timeout=settings.timeout,
        page_size=settings.page_size,
        max_pages=settings.max_pages,
    )
    issues = client.fetch_issues(request.project_key)
    logger.info("Fetched %d issues for %s", len(issues), request.project_key)
    return build_workbook(client.base_url, request.project_key, issues)


def export_issues(payload: Any, settings: FetchSettings | None = None) -> ExportResponse:
    """Validate *payload*, run the export and wrap the outcome in an ExportResponse."""
    try:
        request = ExportRequest.from_payload(payload)
        content = run_export(request, settings)
    except ExportError as exc:
        if exc.status_code < 500:
            logger.warning("Rejected export request: %s", exc)
        else:
            logger.error("Export failed: %s", exc)
        return ExportResponse.error(str(exc), exc.status_code)
    except SonarClientError as exc:
        logger.error("Export failed: %s", exc)
        return ExportResponse.error(str(exc), 500)
    except Exception as exc:
        logger.exception("Unexpected error while exporting issues")
        return ExportResponse.error(str(exc) or "Internal Server Error", 500)

    return ExportResponse(
        status_code=200,
        body=content,
        headers={
            "Content-Type": XLSX_MIME_TYPE,
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"',
        },
    )

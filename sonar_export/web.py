"""HTTP surface: ``POST /api/export`` returns the issues workbook.

Run with ``uvicorn sonar_export.web:app``.
"""

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from sonar_export import __version__
from sonar_export.config import FetchSettings
from sonar_export.service import ExportResponse, export_issues


def create_app(settings: FetchSettings | None = None) -> FastAPI:
    app = FastAPI(title="SonarQube Issues Export", version=__version__)
    app.state.fetch_settings = settings or FetchSettings.from_env()

    @app.post("/api/export")
    async def export(request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            result = ExportResponse.error("Request body must be valid JSON", 400)
        else:
            result = await run_in_threadpool(export_issues, payload, app.state.fetch_settings)
        return Response(
            content=result.body,
            status_code=result.status_code,
            headers=result.headers,
        )

    return app


app = create_app()

"""Write report.json / report.html and map a run to a process exit code."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from testgate.models.config import ReportFormat
from testgate.models.report import ReportDocument

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TESTS_FAILED = 1
EXIT_INFRASTRUCTURE_ERROR = 2

JSON_REPORT_NAME = "report.json"
HTML_REPORT_NAME = "report.html"
TEMPLATE_DIR = Path(__file__).parent / "templates"


def exit_code_for(document: ReportDocument) -> int:
    """0 when the gate passed, 2 for infrastructure errors, 1 otherwise."""
    report = document.report
    if report.quality_gate_passed:
        return EXIT_OK
    if report.has_infrastructure_error:
        return EXIT_INFRASTRUCTURE_ERROR
    return EXIT_TESTS_FAILED


def _create_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


@dataclass(frozen=True, kw_only=True)
class ReportWriter:
    """Serializes report documents.

    JSON is the canonical form. The HTML page is rendered from the decoded
    JSON only, so it cannot show anything the JSON does not contain.
    """

    environment: Environment = field(default_factory=_create_environment, repr=False)
    template_name: str = "report.html.j2"

    def write(
        self, document: ReportDocument, fmt: ReportFormat, out_dir: Path
    ) -> list[Path]:
        """Write the requested formats into ``out_dir`` and return the paths."""
        out_dir.mkdir(parents=True, exist_ok=True)
        payload = document.model_dump_json(indent=2)
        written: list[Path] = []

        if fmt in {"json", "both"}:
            json_path = out_dir / JSON_REPORT_NAME
            json_path.write_text(payload, encoding="utf-8")
            written.append(json_path)

        if fmt in {"html", "both"}:
            html_path = out_dir / HTML_REPORT_NAME
            html = self.render_html(json.loads(payload))
            html_path.write_text(html, encoding="utf-8")
            written.append(html_path)

        for path in written:
            log.info("Report written to %s", path)
        return written

    def render_html(self, data: dict[str, Any]) -> str:
        """Render the decoded report.json content as an HTML page."""
        template = self.environment.get_template(self.template_name)
        return template.render(doc=data)


def read_report(path: Path) -> ReportDocument:
    """Load a report.json written by :class:`ReportWriter`."""
    return ReportDocument.model_validate_json(path.read_text(encoding="utf-8"))

"""Upload report documents to a results dashboard."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp

from testgate.models.config import PublisherConfig
from testgate.models.report import ReportDocument

log = logging.getLogger(__name__)


class PublishError(Exception):
    """Raised when the dashboard rejects a report."""


@dataclass(frozen=True, kw_only=True)
class ResultPublisher:
    """POSTs report.json to a configured endpoint."""

    config: PublisherConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: PublisherConfig
    ) -> AsyncGenerator["ResultPublisher", None]:
        """Create publisher with managed session lifecycle."""
        headers = {"Content-Type": "application/json"}
        if config.token is not None:
            headers["Authorization"] = f"Bearer {config.token.get_secret_value()}"
        timeout = aiohttp.ClientTimeout(total=config.timeout)
        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            yield cls(config=config, session=session)

    async def publish(self, document: ReportDocument) -> None:
        """Send ``document`` to the dashboard.

        Raises:
            PublishError: If the endpoint answers with a non-2xx status

        """
        log.info(
            "Publishing report for run %s to %s",
            document.report.run_id,
            self.config.url,
        )
        async with self.session.post(
            self.config.url, data=document.model_dump_json()
        ) as response:
            if not 200 <= response.status < 300:
                text = await response.text()
                raise PublishError(
                    f"Failed to publish report: {response.status} {text}"
                )
        log.info("Report published (run %s)", document.report.run_id)

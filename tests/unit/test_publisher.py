"""Tests for the report publisher."""

import json
from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr
from yarl import URL

from testgate.models.config import PublisherConfig
from testgate.publisher import PublishError, ResultPublisher
from testgate.testing.factories import AggregateReportFactory, ReportDocumentFactory

PUBLISH_URL = "http://dashboard.test/api/test-runs"


@pytest.fixture
def config() -> PublisherConfig:
    """Create publisher configuration."""
    return PublisherConfig(url=PUBLISH_URL, token=SecretStr("secret-token"))


@pytest.fixture
async def publisher(
    config: PublisherConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[ResultPublisher, None]:
    """Create publisher with managed session."""
    async with ResultPublisher.from_config(config) as impl:
        yield impl


async def test_posts_report_json(
    publisher: ResultPublisher, aioresponses: aioresponses_cls
) -> None:
    """Sends the serialized document with a bearer token."""
    aioresponses.post(PUBLISH_URL, status=201)
    document = ReportDocumentFactory.build(
        report=AggregateReportFactory.build(run_id="run-7")
    )

    await publisher.publish(document)

    call = aioresponses.requests[("POST", URL(PUBLISH_URL))][0]
    assert json.loads(call.kwargs["data"])["report"]["run_id"] == "run-7"
    assert publisher.session.headers["Authorization"] == "Bearer secret-token"


async def test_raises_on_error_status(
    publisher: ResultPublisher, aioresponses: aioresponses_cls
) -> None:
    """Non-2xx answers raise PublishError with the response body."""
    aioresponses.post(PUBLISH_URL, status=401, body="bad token")

    with pytest.raises(PublishError, match="401 bad token"):
        await publisher.publish(ReportDocumentFactory.build())


async def test_omits_authorization_without_token(
    aioresponses: aioresponses_cls,
) -> None:
    """No Authorization header is sent when no token is configured."""
    async with ResultPublisher.from_config(
        PublisherConfig(url=PUBLISH_URL)
    ) as publisher:
        assert "Authorization" not in publisher.session.headers

"""
Tests for the agent run API client, using a fake aiohttp session.
"""
import aiohttp
import pytest

from run_tracker.client import AgentRunAPIClient, JobSource, static_source
from run_tracker.config import APIConfig
from run_tracker.errors import (
    AuthenticationError,
    InvalidResponseError,
    MissingAPIKeyError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    TransportError,
)

RUN_PAYLOAD = {
    "id": 42,
    "organization_id": 7,
    "status": "ACTIVE",
    "created_at": "2024-05-01T12:00:00Z",
    "web_url": "https://codegen.com/agent/trace/42",
    "result": None,
}


class FakeResponse:
    def __init__(self, status=200, body=None, invalid_json=False):
        self.status = status
        self._body = body
        self._invalid_json = invalid_json

    async def json(self, content_type=None):
        if self._invalid_json:
            raise ValueError("not json")
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """Records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


def make_client(*responses, token="secret-token"):
    session = FakeSession(*responses)
    client = AgentRunAPIClient(APIConfig(api_token=token), session=session)
    return client, session


class TestAgentRunAPIClient:
    """Tests for request building and response handling."""

    async def test_fetch_run(self):
        client, session = make_client(FakeResponse(body=dict(RUN_PAYLOAD)))

        run = await client.fetch_run(7, 42)

        assert run.id == 42
        assert run.status == "ACTIVE"
        [request] = session.requests
        assert request["method"] == "GET"
        assert request["url"] == "https://api.codegen.com/v1/organizations/7/agent/run/42"
        assert request["headers"]["Authorization"] == "Bearer secret-token"

    async def test_missing_organization_is_filled_in(self):
        body = {k: v for k, v in RUN_PAYLOAD.items() if k != "organization_id"}
        client, _ = make_client(FakeResponse(body=body))

        assert (await client.fetch_run(7, 42)).organization_id == 7

    async def test_create_run(self):
        client, session = make_client(FakeResponse(body=dict(RUN_PAYLOAD)))

        await client.create_run(7, "Fix the flaky test", images=["data:image/png;base64,AAA"])

        request = session.requests[0]
        assert request["method"] == "POST"
        assert request["url"].endswith("/v1/organizations/7/agent/run")
        assert request["json"] == {"prompt": "Fix the flaky test", "images": ["data:image/png;base64,AAA"]}

    async def test_resume_and_stop(self):
        client, session = make_client(
            FakeResponse(body=dict(RUN_PAYLOAD)),
            FakeResponse(body={**RUN_PAYLOAD, "status": "CANCELLED"}),
        )

        await client.resume_run(7, 42, "keep going")
        stopped = await client.stop_run(7, 42)

        assert session.requests[0]["url"].endswith("/v1/beta/organizations/7/agent/run/resume")
        assert session.requests[0]["json"] == {"agent_run_id": 42, "prompt": "keep going"}
        assert session.requests[1]["url"].endswith("/v1/beta/organizations/7/agent/run/stop")
        assert stopped.status == "CANCELLED"

    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (429, RateLimitError),
        (502, ServiceUnavailableError),
    ])
    async def test_http_errors(self, status, error):
        client, _ = make_client(FakeResponse(status=status, body={"message": "nope"}))

        with pytest.raises(error) as exc_info:
            await client.fetch_run(7, 42)
        assert exc_info.value.message == "nope"
        assert exc_info.value.context.run_id == 42

    async def test_error_without_body(self):
        client, _ = make_client(FakeResponse(status=418, invalid_json=True))

        with pytest.raises(TransportError, match="status 418"):
            await client.fetch_run(7, 42)

    async def test_network_error_is_transport_error(self):
        client, _ = make_client(aiohttp.ClientConnectionError("reset"))

        with pytest.raises(TransportError) as exc_info:
            await client.fetch_run(7, 42)
        assert isinstance(exc_info.value.cause, aiohttp.ClientConnectionError)

    async def test_invalid_json(self):
        client, _ = make_client(FakeResponse(invalid_json=True))
        with pytest.raises(InvalidResponseError):
            await client.fetch_run(7, 42)

    async def test_malformed_payload(self):
        client, _ = make_client(FakeResponse(body={"status": "ACTIVE"}))
        with pytest.raises(InvalidResponseError):
            await client.fetch_run(7, 42)

    async def test_non_object_payload(self):
        client, _ = make_client(FakeResponse(body=[1, 2]))
        with pytest.raises(InvalidResponseError):
            await client.fetch_run(7, 42)

    def test_requires_token(self):
        with pytest.raises(MissingAPIKeyError):
            AgentRunAPIClient(APIConfig(api_token=None))

    def test_repr_redacts_token(self):
        client, _ = make_client()
        text = repr(client)

        assert "secret-token" not in text
        assert "secr...oken" in text

    async def test_does_not_close_injected_session(self):
        client, session = make_client()
        async with client:
            pass
        assert not session.closed

    def test_is_a_job_source(self):
        client, _ = make_client()
        assert isinstance(client, JobSource)
        assert static_source(client)() is client

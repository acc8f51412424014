"""
End-to-end tests for the hook endpoint.
"""

import hashlib
import logging

import pytest
import structlog
from fastapi.testclient import TestClient

from autoupdate_hook.app import create_app
from autoupdate_hook.auth import NoAuth, SignedWebhook, StaticToken
from autoupdate_hook.logging import setup_logging
from autoupdate_hook.metrics import get_metrics_text
from autoupdate_hook.rate_limit import InMemoryRateLimiter
from autoupdate_hook.update import UpdateInvoker

from conftest import SAMPLE_OUTPUT, FakeLimiter, FakeRunner


def make_client(policy, runner=None, limiter=None) -> TestClient:
    runner = runner or FakeRunner(stdout=SAMPLE_OUTPUT)
    app = create_app(
        policy=policy,
        limiter=limiter or FakeLimiter(),
        invoker=UpdateInvoker(runner=runner),
    )
    return TestClient(app)


def signature_for(secret: str, body: bytes) -> str:
    return "sha256=" + hashlib.sha256(secret.encode() + body).hexdigest()


class TestSignedWebhookEndToEnd:
    """Tests for the signed webhook policy over HTTP."""

    def test_valid_signature_runs_update(self):
        """secret 'abc', body 'hello': 200 with the invoker's records."""
        runner = FakeRunner(stdout=SAMPLE_OUTPUT)
        client = make_client(SignedWebhook(secret="abc"), runner=runner)

        response = client.post(
            "/hook",
            content=b"hello",
            headers={"X-Hub-Signature-256": signature_for("abc", b"hello")},
        )

        assert response.status_code == 200
        assert response.json()[0]["ContainerID"] == "3a5f1c2b9d0e"
        assert response.json()[0]["Updated"] == "false"
        assert len(runner.calls) == 1

    def test_wrong_signature(self):
        """A signature for another body is 401 with no update."""
        runner = FakeRunner(stdout=SAMPLE_OUTPUT)
        client = make_client(SignedWebhook(secret="abc"), runner=runner)

        response = client.post(
            "/hook",
            content=b"hello",
            headers={"X-Hub-Signature-256": signature_for("abc", b"bye")},
        )

        assert response.status_code == 401
        assert response.content == b""
        assert runner.calls == []

    def test_missing_signature(self):
        """No signature header is 400."""
        client = make_client(SignedWebhook(secret="abc"))

        response = client.post("/hook", content=b"hello")

        assert response.status_code == 400
        assert response.content == b""

    def test_malformed_signature(self):
        """A signature header without '=' is 400."""
        client = make_client(SignedWebhook(secret="abc"))

        response = client.post("/hook", content=b"hello", headers={"X-Hub-Signature-256": "abc"})

        assert response.status_code == 400

    def test_ignored_event_returns_empty_array(self):
        """Unlisted events get 200 and [] without running the update."""
        runner = FakeRunner(stdout=SAMPLE_OUTPUT)
        policy = SignedWebhook(secret="abc", allowed_events=frozenset({"push"}))
        client = make_client(policy, runner=runner)

        response = client.post(
            "/hook",
            content=b"hello",
            headers={
                "X-Hub-Signature-256": signature_for("abc", b"hello"),
                "X-GitHub-Event": "pull_request",
            },
        )

        assert response.status_code == 200
        assert response.json() == []
        assert runner.calls == []

    def test_ignored_event_with_logging_configured(self):
        """Ignoring an event still answers [] once production logging is set up."""
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        setup_logging(level="INFO", json_output=True)
        try:
            runner = FakeRunner(stdout=SAMPLE_OUTPUT)
            policy = SignedWebhook(secret="abc", allowed_events=frozenset({"push"}))
            client = make_client(policy, runner=runner)

            response = client.post(
                "/hook",
                content=b"hello",
                headers={
                    "X-Hub-Signature-256": signature_for("abc", b"hello"),
                    "X-GitHub-Event": "pull_request",
                },
            )
        finally:
            structlog.reset_defaults()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        assert response.status_code == 200
        assert response.json() == []
        assert runner.calls == []

    def test_missing_event_header(self):
        """An allow-list makes the event header mandatory."""
        policy = SignedWebhook(secret="abc", allowed_events=frozenset({"push"}))
        client = make_client(policy)

        response = client.post(
            "/hook",
            content=b"hello",
            headers={"X-Hub-Signature-256": signature_for("abc", b"hello")},
        )

        assert response.status_code == 400


class TestStaticTokenEndToEnd:
    """Tests for the bearer token policy over HTTP."""

    def test_matching_token(self):
        """The expected bearer token runs the update."""
        client = make_client(StaticToken(expected="T"))

        response = client.post("/hook", headers={"Authorization": "Bearer T"})

        assert response.status_code == 200
        assert len(response.json()) == 1

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer T2"}, {"Authorization": "T"}])
    def test_rejected(self, headers):
        """Missing or wrong tokens are 401."""
        client = make_client(StaticToken(expected="T"))

        response = client.post("/hook", headers=headers)

        assert response.status_code == 401


class TestInvocationFailures:
    """Tests for mapping invoker failures to HTTP."""

    def test_command_failure_is_500(self):
        """A non-zero exit is an internal error with empty body."""
        client = make_client(NoAuth(), runner=FakeRunner(returncode=1, stderr=b"boom"))

        response = client.post("/hook")

        assert response.status_code == 500
        assert response.content == b""

    def test_parse_failure_is_500(self):
        """Unexpected output schema is an internal error."""
        client = make_client(NoAuth(), runner=FakeRunner(stdout=b'[{"Unit": "x"}]'))

        response = client.post("/hook")

        assert response.status_code == 500

    def test_no_updates(self):
        """Diagnostic output means an empty array."""
        client = make_client(NoAuth(), runner=FakeRunner(stdout=b"nothing to do\n"))

        response = client.post("/hook")

        assert response.status_code == 200
        assert response.json() == []


class TestRateLimiting:
    """Tests for the limiter in front of the route."""

    def test_key_taken_from_bearer(self):
        """The limiter is keyed by the trimmed bearer value."""
        limiter = FakeLimiter()
        client = make_client(StaticToken(expected="T"), limiter=limiter)

        client.post("/hook", headers={"Authorization": "Bearer  T"})
        client.post("/hook")

        assert limiter.keys == ["T", ""]

    def test_rejects_with_429_before_auth(self):
        """Throttled requests never reach the authenticator or the update."""
        runner = FakeRunner(stdout=SAMPLE_OUTPUT)
        client = make_client(
            NoAuth(),
            runner=runner,
            limiter=InMemoryRateLimiter(burst=2, period=10),
        )

        statuses = [client.post("/hook").status_code for _ in range(3)]
        throttled = client.post("/hook")

        assert statuses == [200, 200, 429]
        assert throttled.status_code == 429
        assert int(throttled.headers["Retry-After"]) > 0
        assert throttled.headers["X-RateLimit-Limit"] == "2"
        assert throttled.text.startswith("Too Many Requests! Wait for")
        assert len(runner.calls) == 2

    def test_admitted_responses_carry_quota(self):
        """Successful responses report the remaining budget."""
        client = make_client(NoAuth(), limiter=InMemoryRateLimiter(burst=5, period=10))

        response = client.post("/hook")

        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "4"

    def test_health_not_rate_limited(self):
        """Health and metrics bypass the limiter."""
        limiter = FakeLimiter(allow=0)
        client = make_client(NoAuth(), limiter=limiter)

        assert client.get("/health").status_code == 200
        assert client.get("/metrics").status_code == 200
        assert client.post("/hook").status_code == 429
        assert limiter.keys == [""]


class TestAmbientEndpoints:
    """Tests for health, metrics and request ids."""

    def test_health_reports_policy_mode(self):
        """Health shows which policy is active, never its secret."""
        client = make_client(SignedWebhook(secret="abc"))

        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["auth"] == "github"
        assert "abc" not in str(body)

    def test_metrics_count_outcomes(self):
        """Request outcomes show up in the Prometheus output."""
        client = make_client(StaticToken(expected="T"))
        client.post("/hook")

        text = client.get("/metrics").text

        assert 'hook_requests_total{outcome="unauthorized"}' in text

    def test_request_id_echoed(self):
        """A supplied request id is returned, otherwise one is generated."""
        client = make_client(NoAuth())

        supplied = client.get("/health", headers={"X-Request-ID": "abc123"})
        generated = client.get("/health")

        assert supplied.headers["X-Request-ID"] == "abc123"
        assert generated.headers["X-Request-ID"]

    def test_only_post_hook(self):
        """The hook route only accepts POST."""
        client = make_client(NoAuth())

        assert client.get("/hook").status_code == 405


class TestClientDisconnect:
    """Tests for clients that go away while the body is being hashed."""

    @staticmethod
    async def call_with_disconnect(app, messages):
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "POST",
            "scheme": "http",
            "path": "/hook",
            "raw_path": b"/hook",
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"host", b"testserver"),
                (b"x-hub-signature-256", signature_for("abc", b"hello").encode()),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
        incoming = list(messages)
        sent = []

        async def receive():
            if incoming:
                return incoming.pop(0)
            return {"type": "http.disconnect"}

        async def send(message):
            sent.append(message)

        await app(scope, receive, send)
        return sent

    @pytest.mark.asyncio
    async def test_disconnect_mid_body(self):
        """A disconnect during hashing is 400 and the update never runs."""
        runner = FakeRunner(stdout=SAMPLE_OUTPUT)
        app = create_app(
            policy=SignedWebhook(secret="abc"),
            limiter=FakeLimiter(),
            invoker=UpdateInvoker(runner=runner),
        )

        sent = await self.call_with_disconnect(app, [
            {"type": "http.request", "body": b"hel", "more_body": True},
            {"type": "http.disconnect"},
        ])

        start = next(m for m in sent if m["type"] == "http.response.start")
        assert start["status"] == 400
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_disconnect_counted(self):
        """Disconnects are recorded under their own outcome."""
        app = create_app(
            policy=SignedWebhook(secret="abc"),
            limiter=FakeLimiter(),
            invoker=UpdateInvoker(runner=FakeRunner(stdout=SAMPLE_OUTPUT)),
        )

        await self.call_with_disconnect(app, [{"type": "http.disconnect"}])

        text = get_metrics_text().decode()
        assert 'hook_requests_total{outcome="disconnected"}' in text

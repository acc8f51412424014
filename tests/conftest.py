"""
Shared fixtures for hook tests.
"""

import pytest

from autoupdate_hook.rate_limit import RateLimitInfo
from autoupdate_hook.update.invoker import CommandOutput, UpdateInvoker

SAMPLE_OUTPUT = (
    b'[{"Unit":"container-web.service","Container":"3a5f1c2b9d0e (web)",'
    b'"Image":"docker.io/library/nginx:latest","ContainerName":"web",'
    b'"ContainerID":"3a5f1c2b9d0e","Policy":"registry","Updated":"false"}]'
)


async def stream(*chunks: bytes):
    """Async body stream yielding ``chunks`` in order."""
    for chunk in chunks:
        yield chunk


class FakeLimiter:
    """Deterministic limiter admitting the first ``allow`` calls per key."""

    def __init__(self, allow: int = 1000):
        self.allow = allow
        self.keys = []

    async def check(self, key: str) -> RateLimitInfo:
        self.keys.append(key)
        used = self.keys.count(key)
        allowed = used <= self.allow
        return RateLimitInfo(
            allowed=allowed,
            remaining=max(0, self.allow - used),
            limit=self.allow,
            reset_at=0,
            retry_after=None if allowed else 10,
        )


class FakeRunner:
    """Records calls and returns a canned command result."""

    def __init__(self, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        self.output = CommandOutput(returncode=returncode, stdout=stdout, stderr=stderr)
        self.calls = []

    async def __call__(self, command, timeout):
        self.calls.append((list(command), timeout))
        return self.output


@pytest.fixture
def fake_limiter():
    return FakeLimiter()


@pytest.fixture
def runner():
    return FakeRunner(stdout=SAMPLE_OUTPUT)


@pytest.fixture
def invoker(runner):
    return UpdateInvoker(runner=runner)

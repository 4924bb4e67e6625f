import asyncio
import json
from typing import Any, Callable, List, Sequence, Tuple, Union

import pytest
from typer.testing import CliRunner

from leadsight.domain.interfaces.text_generator import TextGenerator
from leadsight.domain.models.common import (
    ApiKeySecret,
    Credential,
    CredentialName,
    GenerationRequest,
    ModelName,
    RetryPolicy,
)
from leadsight.infrastructure.config import settings
from leadsight.infrastructure.resilience.credential_pool import CredentialPool


class FakeClock:
    """Manual monotonic clock whose async sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


Outcome = Union[str, BaseException, Callable[[GenerationRequest], Any]]


class ScriptedGenerator(TextGenerator):
    """Returns or raises the scripted outcomes in order, recording each call."""

    def __init__(self, outcomes: Sequence[Outcome]):
        self.outcomes = list(outcomes)
        self.calls: List[Tuple[GenerationRequest, ApiKeySecret]] = []

    async def generate(self, request: GenerationRequest, api_key: ApiKeySecret) -> str:
        self.calls.append((request, api_key))
        if not self.outcomes:
            raise AssertionError("ScriptedGenerator ran out of outcomes")
        outcome = self.outcomes.pop(0)
        if callable(outcome) and not isinstance(outcome, BaseException):
            outcome = outcome(request)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def keys_used(self) -> List[str]:
        return [key for _, key in self.calls]


def make_credentials(count: int) -> List[Credential]:
    return [
        Credential(identity=CredentialName(f"key{i}"), secret=ApiKeySecret(f"secret-{i}"))
        for i in range(1, count + 1)
    ]


def run(coro):
    return asyncio.run(coro)


async def collect(agen) -> list:
    return [event async for event in agen]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_pool(clock):
    def _make(count: int = 2) -> CredentialPool:
        return CredentialPool(make_credentials(count), clock=clock)
    return _make


@pytest.fixture
def no_jitter_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=60.0, jitter=False)


@pytest.fixture
def sample_request() -> GenerationRequest:
    return GenerationRequest(
        model=ModelName("test-model"),
        system_instruction="Be helpful.",
        user_prompt="Analyze these prospects",
    )


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


CREDENTIAL_ENV_VARS = (
    ["GOOGLE_API_KEY", "GEMINI_API_KEY_PRIMARY", "GEMINI_API_KEY_SECONDARY",
     "OPENAI_API_KEY", "GROQ_API_KEY"]
    + [f"GEMINI_API_KEY_EXTRA_{i}" for i in range(1, 6)]
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keeps tests away from real config files, .env files and API keys."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for key in list(settings.DEFAULTS) + ['credentials', 'ai.model', 'ai.base_url', 'logging.file']:
        monkeypatch.delenv(settings.env_var_name(key), raising=False)
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", True)
    settings.clear_test_config()
    yield
    settings.clear_test_config()


def leads_in(request: GenerationRequest) -> List[dict]:
    """Recovers the lead list embedded in an insight request prompt."""
    return json.loads(request.user_prompt.split("\n\n", 1)[1])


def echo_insights(request: GenerationRequest) -> str:
    """A well-formed upstream reply covering every lead in the request."""
    return json.dumps({
        "prospectInsights": [
            {
                "name": lead["name"],
                "role": lead.get("role", ""),
                "profileNotes": f"Notes for {lead['name']}",
                "pitchSuggestions": [{"pitch": "Audit"}, {"pitch": "Cloud"}, {"pitch": "Team"}],
                "conversationStarter": f"Hi {lead['name']}",
            }
            for lead in leads_in(request)
        ]
    })


def make_leads(count: int) -> List[dict]:
    roles = ["CTO", "Founder and CEO", "VP Engineering"]
    return [
        {"name": f"Lead {i}", "role": roles[i % len(roles)], "company": f"Company {i}"}
        for i in range(1, count + 1)
    ]

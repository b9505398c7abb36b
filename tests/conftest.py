"""
Pytest configuration for nlc tests.

Provides a default config, a fake credential and a stub backend factory so
nothing here touches the network.
"""

import pytest

from nlc.compiler.client import StubGenerationClient
from nlc.config import CompilerConfig

FAKE_ENV = {"OPENAI_API_KEY": "sk-test"}

SUM_ALGORITHM = (
    "Given a list of numbers, return their sum. "
    "Domain: array of numbers. Range: a single number."
)
SUM_FUNCTION = "function nlcCompiled(input) {\n  return { sum: input.nums.reduce((a, b) => a + b, 0) };\n}"


@pytest.fixture
def config():
    return CompilerConfig()


@pytest.fixture
def stub():
    return StubGenerationClient(reply=f"```javascript\n{SUM_FUNCTION}\n```")


@pytest.fixture
def stub_factory(stub):
    """Client factory that always hands back the same stub and records keys."""

    def factory(api_key, config):
        factory.keys.append(api_key)
        return stub

    factory.keys = []
    return factory

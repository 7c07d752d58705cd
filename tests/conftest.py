"""
benchllm test fixtures
======================
A scripted chat client stands in for the judge model, so no test touches
the network.
"""

import io
import threading
from typing import Optional

import pytest

from benchllm.base import clear_registry
from benchllm.client import ChatClient, ChatMessage, ChatResponse
from benchllm.log import Logger


class FakeChatClient(ChatClient):
    """
    ChatClient returning scripted responses in order.

    A response that is an exception instance is raised instead of returned.
    The last response repeats once the script runs out.
    """

    def __init__(self, *responses, model: str = "fake-judge", input_tokens: int = 10, output_tokens: int = 5):
        self.responses = list(responses) or [""]
        self.model = model
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: list[list[ChatMessage]] = []

    def complete(self, messages: list[ChatMessage], options: Optional[dict] = None) -> ChatResponse:
        self.calls.append(list(messages))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return ChatResponse(text=response, input_tokens=self.input_tokens, output_tokens=self.output_tokens)

    @property
    def last_user_prompt(self) -> str:
        return next(m.text for m in reversed(self.calls[-1]) if m.role == "user")


GOOD_JUDGE_RESPONSE = """completeness: 4
structure: 5
accuracy: 4
engagement: 3
evidence_quality: 2
balance: 4
actionability: 5
depth: 3
reasoning: Clear structure and practical steps, but few concrete numbers."""


# ====================
# pytest Fixtures
# ====================

@pytest.fixture(autouse=True)
def isolated_registry():
    """Every test starts and ends with an empty candidate registry."""
    clear_registry()
    yield
    clear_registry()


@pytest.fixture
def fake_client():
    return FakeChatClient(GOOD_JUDGE_RESPONSE)


@pytest.fixture
def cancel_event():
    return threading.Event()


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def quiet_logger(log_stream):
    """Logger writing into a buffer instead of stderr."""
    return Logger(stream=log_stream, verbose=True)


# ====================
# pytest Configuration
# ====================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: exercises several components together (no network)")

"""
Model-call capability used by the judges.

The harness only needs one thing from a provider: send an ordered list of
role-tagged messages and get text back (whole or streamed) with usage counts.
Anything that implements ChatClient can be used as a judge.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class ChatMessage:
    """A single role-tagged message ("system", "user" or "assistant")."""
    role: str
    text: str


@dataclass(frozen=True)
class ChatResponse:
    """Complete response from a model call."""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class ChatUpdate:
    """
    One streamed chunk.

    Usage counts are usually only present on the final chunk.
    """
    text: str = ""
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


class ChatClient(ABC):
    """
    Abstract chat client.

    Subclasses implement complete(). stream() defaults to a single update
    built from complete(); override it when the provider supports streaming.
    """

    model: str = "unknown"

    @abstractmethod
    def complete(self, messages: list[ChatMessage], options: Optional[dict] = None) -> ChatResponse:
        pass

    def stream(self, messages: list[ChatMessage], options: Optional[dict] = None) -> Iterator[ChatUpdate]:
        response = self.complete(messages, options)
        yield ChatUpdate(
            text=response.text,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )


def collect_text(client: ChatClient, messages: list[ChatMessage], options: Optional[dict] = None) -> str:
    """Drain a streamed response into a single string."""
    return "".join(update.text or "" for update in client.stream(messages, options))


class GeminiChatClient(ChatClient):
    """
    Chat client backed by Gemini via google-genai.

    Takes the API key explicitly; reading it from the environment is the
    caller's job.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0,
        max_output_tokens: int = 4096,
    ):
        if not api_key:
            raise ValueError("An API key is required for GeminiChatClient")

        # Lazy import to keep the core importable without the SDK configured
        from google import genai
        from google.genai import types
        self.genai = genai
        self.types = types

        self.client = genai.Client(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def _build_request(self, messages: list[ChatMessage], options: Optional[dict]):
        """Split system messages into the system instruction, the rest into contents."""
        options = options or {}
        system_parts = [m.text for m in messages if m.role == "system"]
        contents = [
            self.types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[self.types.Part.from_text(text=m.text)],
            )
            for m in messages
            if m.role != "system"
        ]
        config = self.types.GenerateContentConfig(
            temperature=options.get("temperature", self.temperature),
            max_output_tokens=options.get("max_output_tokens", self.max_output_tokens),
            system_instruction="\n\n".join(system_parts) if system_parts else None,
        )
        return contents, config

    @staticmethod
    def _usage(response) -> tuple[Optional[int], Optional[int]]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return None, None
        return (
            getattr(usage, "prompt_token_count", None),
            getattr(usage, "candidates_token_count", None),
        )

    def complete(self, messages: list[ChatMessage], options: Optional[dict] = None) -> ChatResponse:
        contents, config = self._build_request(messages, options)
        response = self.client.models.generate_content(
            model=self.model,
            contents=contents,
            config=config,
        )
        input_tokens, output_tokens = self._usage(response)

        # Handle blocked responses (finish_reason != STOP)
        if not response.candidates or not response.candidates[0].content.parts:
            finish_reason = response.candidates[0].finish_reason if response.candidates else "UNKNOWN"
            text = f"[Response blocked by safety filter: {finish_reason}]"
        else:
            text = response.text or ""

        return ChatResponse(
            text=text,
            input_tokens=input_tokens or 0,
            output_tokens=output_tokens or 0,
        )

    def stream(self, messages: list[ChatMessage], options: Optional[dict] = None) -> Iterator[ChatUpdate]:
        contents, config = self._build_request(messages, options)
        for chunk in self.client.models.generate_content_stream(
            model=self.model,
            contents=contents,
            config=config,
        ):
            input_tokens, output_tokens = self._usage(chunk)
            yield ChatUpdate(
                text=chunk.text or "",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

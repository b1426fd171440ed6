"""
Generation service collaborators.

Anything with ``generate(prompt_text) -> str`` can drive the orchestrator.
Failures of any kind are raised as ``ServiceError``.
"""

import os
from typing import Any, Dict, List, Optional, Protocol

import openai
from openai import OpenAI

from .errors import ServiceError

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

DEFAULT_MODEL = os.environ.get("LLM_VOCAB_MODEL", "gpt-4o-mini")
MAX_COMPLETION_TOKENS = 1024


class Generator(Protocol):
    def generate(self, prompt_text: str) -> str: ...


def text_from_envelope(payload: Any) -> Optional[str]:
    """Pull the generated text out of a decoded JSON response.

    Understands the chat completions shape (``choices[0].message.content``)
    and the Gemini shape (``candidates[0].content.parts[0].text``). Returns
    None when neither field is present.
    """
    if not isinstance(payload, dict):
        return None
    paths: List[List[Any]] = [
        ["choices", 0, "message", "content"],
        ["candidates", 0, "content", "parts", 0, "text"],
    ]
    for path in paths:
        node: Any = payload
        for key in path:
            try:
                node = node[key]
            except (KeyError, IndexError, TypeError):
                node = None
                break
        if isinstance(node, str):
            return node
    return None


class OpenAIGenerator:
    """Chat completions client wrapped to the ``generate`` interface.

    ``base_url`` lets the same client talk to OpenRouter or Gemini's
    OpenAI-compatible endpoint.
    """

    def __init__(self, client: Any, model_name: str = DEFAULT_MODEL, system: str = "") -> None:
        self.client = client
        self.model_name = model_name
        self.system = system

    @classmethod
    def from_env(cls, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 model_name: str = DEFAULT_MODEL) -> Optional["OpenAIGenerator"]:
        api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            print("Warning: No API key provided. AI features will be disabled.")
            return None
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        base_url = base_url or os.environ.get("OPENAI_BASE_URL")
        if base_url:
            client_kwargs["base_url"] = base_url
        return cls(OpenAI(**client_kwargs), model_name=model_name)

    def generate(self, prompt_text: str) -> str:
        messages: List[Dict[str, str]] = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.append({"role": "user", "content": prompt_text})

        if DEBUG_MODE:
            print(f"🤖 OpenAI API Call Details:")
            print(f"   Model: {self.model_name}")
            print(f"   Prompt length: {len(prompt_text)} characters")

        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,  # type: ignore
                max_completion_tokens=MAX_COMPLETION_TOKENS,
            )
        except openai.APIStatusError as e:
            raise ServiceError(e.status_code, e.message) from e
        except openai.OpenAIError as e:
            raise ServiceError(None, str(e)) from e

        payload = response.model_dump() if hasattr(response, "model_dump") else response
        content = text_from_envelope(payload)
        if content is None:
            raise ServiceError(None, "response did not contain any generated text")

        if DEBUG_MODE:
            print(f"✅ OpenAI API Response: {len(content)} characters")
        return str(content)


class LLMGenerator:
    """Adapter for models obtained from the ``llm`` library."""

    def __init__(self, model: Any, system: str = "") -> None:
        self.model = model
        self.system = system

    @classmethod
    def from_name(cls, model_name: str) -> "LLMGenerator":
        import llm  # type: ignore
        try:
            return cls(llm.get_model(model_name))
        except llm.UnknownModelError as e:
            raise ServiceError(None, f"Model '{model_name}' not available: {e}") from e

    def generate(self, prompt_text: str) -> str:
        try:
            if self.system:
                response = self.model.prompt(prompt_text, system=self.system)
            else:
                response = self.model.prompt(prompt_text)
            text = response.text()
        except ServiceError:
            raise
        except Exception as e:
            # llm plugins raise their own exception types; keep the message
            raise ServiceError(getattr(e, "status_code", None), str(e)) from e
        if text is None:
            raise ServiceError(None, "response did not contain any generated text")
        return str(text)

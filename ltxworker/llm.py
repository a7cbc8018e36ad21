"""
Language model backends.

A provider turns a prompt into text or raises ModelError. The pipeline depends
only on that capability, so a deterministic ScriptedProvider can stand in for
the production OpenAIProvider in tests.
"""

import threading
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Union

import openai

from .errors import ModelError
from .logger import get_logger
from .retry import RetryError, exponential_backoff

logger = get_logger()

SYSTEM_PROMPT = "You write llms.txt files: concise markdown summaries of websites for language models."


class LLMProvider(ABC):
    """Abstract base for LLM providers."""

    name: str

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """
        Complete a prompt.

        Raises:
            ModelError: On transport, timeout, or provider errors
        """
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider.

    Rate limits are retried with backoff inside the provider; every other
    failure surfaces immediately as ModelError.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        rate_limit_retries: int = 3,
    ):
        self.model = model
        self.name = f"openai/{model}"
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self._complete = exponential_backoff(
            max_retries=rate_limit_retries,
            base_delay=2.0,
            exceptions=(openai.RateLimitError,),
            on_retry=lambda attempt, e, delay: logger.warning(
                "Model rate limited, retrying",
                model=self.model,
                attempt=attempt,
                delay=delay,
            ),
        )(self._call_api)

    def _call_api(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
        return response.choices[0].message.content or ""

    def generate(self, prompt: str) -> str:
        try:
            return self._complete(prompt)
        except RetryError as e:
            raise ModelError(f"model unavailable ({self.name}): {e}") from e
        except openai.APITimeoutError as e:
            raise ModelError(f"model timed out ({self.name})") from e
        except openai.OpenAIError as e:
            raise ModelError(f"model unavailable ({self.name}): {type(e).__name__}: {e}") from e


class ScriptedProvider(LLMProvider):
    """
    Deterministic provider for tests and dry runs.

    Returns the scripted responses in order. A scripted Exception instance is
    raised instead of returned (wrapped in ModelError unless it already is one).
    Running past the end of the script raises ModelError.
    """

    name = "scripted"

    def __init__(self, responses: Iterable[Union[str, Exception]] = ()):
        self._responses: List[Union[str, Exception]] = list(responses)
        self._lock = threading.Lock()
        self.prompts: List[str] = []

    @classmethod
    def repeating(cls, response: str, times: int = 1000) -> "ScriptedProvider":
        return cls([response] * times)

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str) -> str:
        with self._lock:
            index = len(self.prompts)
            self.prompts.append(prompt)
        if index >= len(self._responses):
            raise ModelError(f"scripted provider exhausted after {len(self._responses)} responses")
        response = self._responses[index]
        if isinstance(response, ModelError):
            raise response
        if isinstance(response, Exception):
            raise ModelError(str(response)) from response
        return response

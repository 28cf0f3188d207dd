from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import openai
from openai import OpenAI
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from resumeflame.errors import AuthError, ConfigError, TransientGenerationError
from resumeflame.prompts import (
    FIX_TEMPERATURE,
    ROAST_SYSTEM_PROMPT,
    ROAST_TEMPERATURE,
    fix_system_prompt,
)

LOG = logging.getLogger("resumeflame.llm_client")

MAX_INPUT_CHARS = 4000
MAX_ATTEMPTS = 3
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class GenerationRequest:
    kind: str
    system_prompt: str
    user_prefix: str
    text: str
    temperature: float
    json_output: bool = False

    def user_message(self) -> str:
        return self.user_prefix + self.text[:MAX_INPUT_CHARS]


def roast_request(text: str) -> GenerationRequest:
    return GenerationRequest(
        kind="critique",
        system_prompt=ROAST_SYSTEM_PROMPT,
        user_prefix="Roast this resume:\n\n",
        text=text,
        temperature=ROAST_TEMPERATURE,
        json_output=True,
    )


def fix_request(text: str, tier: str) -> GenerationRequest:
    return GenerationRequest(
        kind="rewrite",
        system_prompt=fix_system_prompt(tier),
        user_prefix="Rewrite this resume:\n\n",
        text=text,
        temperature=FIX_TEMPERATURE,
    )


def classify_error(e: Exception) -> Exception:
    """Map an SDK failure onto our taxonomy. Only credential problems are final."""
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthError(f"LLM provider rejected credentials: {e}")
    return TransientGenerationError(f"LLM call failed: {e}")


class GenerationClient:
    """Chat-completion wrapper with a bounded, linear-backoff retry.

    Three attempts total; the wait before attempt N+1 is N seconds.
    ``client`` and ``sleep`` are injectable so tests never touch the network.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        client: Optional[OpenAI] = None,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.max_attempts = max_attempts
        self._client = client
        self._sleep = sleep

    def check_configured(self) -> None:
        if self._client is None and not self.api_key:
            raise ConfigError("OPENAI_API_KEY must be set")

    def get_client(self) -> OpenAI:
        if self._client is None:
            self.check_configured()
            # our own retry policy replaces the SDK's
            self._client = OpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    def _log_retry(self, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        LOG.warning(
            "Attempt %d/%d failed, retrying in %.0fs: %s",
            state.attempt_number,
            self.max_attempts,
            state.next_action.sleep if state.next_action else 0,
            exc,
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception_type(TransientGenerationError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    def _call_once(self, request: GenerationRequest) -> str:
        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_message()},
            ],
            "temperature": request.temperature,
        }
        if request.json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = self.get_client().chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise classify_error(e) from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise TransientGenerationError("LLM returned an empty completion")
        return content

    def generate(self, request: GenerationRequest) -> str:
        """Run one generation; raises a GenerationError subclass on failure."""
        LOG.info(
            "Calling LLM for %s, text length=%d (sent %d)",
            request.kind,
            len(request.text),
            min(len(request.text), MAX_INPUT_CHARS),
        )
        return self._retrying()(self._call_once, request)

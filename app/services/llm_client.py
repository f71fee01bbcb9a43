from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import httpx

from app.services.safe_sql import summarize_sql

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-chat"


class LlmError(Exception):
    def __init__(self, status_code: int, details: str) -> None:
        super().__init__(f"LLM request failed with status {status_code}")
        self.status_code = status_code
        self.details = details


class CompletionClient(Protocol):
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> str: ...


class DeepSeekClient:
    """Chat-completions client returning the first choice's text."""

    def __init__(
        self,
        api_key: str,
        *,
        url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        attempts: int = 2,
        backoff_s: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.backoff_s = backoff_s
        self._transport = transport

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        summary = summarize_sql(user_prompt)

        for attempt in range(1, self.attempts + 1):
            try:
                with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                    response = client.post(self.url, headers=headers, json=payload)
            except httpx.TransportError as exc:
                if attempt == self.attempts:
                    logger.error(
                        "complete: transport failure after %s attempts: %s", attempt, exc
                    )
                    raise LlmError(502, str(exc)) from exc
                wait_s = self.backoff_s * attempt
                logger.warning("complete: attempt %s failed, retrying in %ss", attempt, wait_s)
                time.sleep(wait_s)
                continue

            if response.status_code >= 400:
                logger.warning(
                    "complete: upstream status=%s prompt_len=%s prompt_hash=%s",
                    response.status_code,
                    summary["len"],
                    summary["sha256_8"],
                )
                raise LlmError(response.status_code, response.text)

            try:
                data = response.json()
            except ValueError as exc:
                logger.warning(
                    "complete: upstream returned non-JSON body status=%s", response.status_code
                )
                raise LlmError(502, "Upstream returned a non-JSON body") from exc
            content = _first_choice_content(data)
            logger.info(
                "complete: ok prompt_len=%s prompt_hash=%s reply_len=%s",
                summary["len"],
                summary["sha256_8"],
                len(content),
            )
            return content

        raise LlmError(502, "no attempt was made")


def _first_choice_content(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content.strip() if isinstance(content, str) else ""

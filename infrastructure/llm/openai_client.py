# infrastructure/llm/openai_client.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional
import requests

from domain.errors import ClassifierError
from utils.logging_setup import component_logger


class OpenAIClassifier:
    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        logger: logging.LoggerAdapter | None = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base = base.rstrip("/")
        self.timeout = timeout
        self.logger = logger or component_logger("classifier")
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    @staticmethod
    def _content(payload: Any) -> str:
        """Text of the first choice; list-of-parts content is joined."""
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ClassifierError(f"unexpected completion payload: {exc!r}") from exc
        if isinstance(content, list):
            content = "".join(p.get("text", "") for p in content if isinstance(p, dict))
        if not isinstance(content, str):
            raise ClassifierError("completion content is not text")
        return content

    def classify(self, prompt: str, temperature: float) -> str:
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        self.logger.debug("Calling OpenAI for email categorization", extra={"model": self.model})
        try:
            r = self.session.post(
                f"{self.base}/chat/completions",
                headers=self._headers(),
                json=body,
                timeout=self.timeout,
            )
            r.raise_for_status()
            payload = r.json()
        except requests.HTTPError as exc:
            detail = (exc.response.text if exc.response is not None else "")[:200]
            raise ClassifierError(f"OpenAI HTTP error: {exc} {detail}".strip()) from exc
        except requests.RequestException as exc:
            raise ClassifierError(f"OpenAI request failed: {exc}") from exc
        except ValueError as exc:
            raise ClassifierError(f"OpenAI returned invalid JSON: {exc}") from exc
        return self._content(payload).strip()

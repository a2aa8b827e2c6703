"""Thin Gemini API wrapper used by the generation and refinement orchestrators."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import httpx

from ..errors import (
    AuthenticationError,
    ClientConfigurationError,
    RateLimitError,
    RemoteError,
    TransientError,
)
from .types import Attachment


class GenerativeClient(Protocol):
    """The one operation the orchestrators need from a remote model."""

    def generate_text(
        self,
        prompt: str,
        context: Sequence[Mapping[str, str]] = (),
        attachment: Optional[Attachment] = None,
    ) -> str:
        ...


@dataclass(frozen=True)
class GenerationSettings:
    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192

    def to_payload(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


class GeminiClient:
    """Co-ordinates requests to Gemini's ``generateContent`` endpoint.

    Retries are deliberately not performed here; see ``retry.call_with_retry``.
    """

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.5-flash"
    _DEFAULT_TIMEOUT = 60.0
    _TRANSIENT_STATUS_CODES = {408, 500, 502, 503, 504}
    _SAFETY_CATEGORIES = (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        model: str = DEFAULT_MODEL,
        settings: Optional[GenerationSettings] = None,
        timeout: float = _DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError("Gemini API key is required")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.settings = settings or GenerationSettings()
        self.timeout = timeout

        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------
    # Content generation
    # ------------------------------
    def generate_text(
        self,
        prompt: str,
        context: Sequence[Mapping[str, str]] = (),
        attachment: Optional[Attachment] = None,
    ) -> str:
        """Send ``prompt`` as the next user turn after ``context`` and return the reply text."""

        payload = self.build_payload(prompt, context, attachment)
        response_data = self._post(f"/models/{self.model}:generateContent", payload)
        return self._parse_generation(response_data)

    def build_payload(
        self,
        prompt: str,
        context: Sequence[Mapping[str, str]] = (),
        attachment: Optional[Attachment] = None,
    ) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = [
            {"role": turn["role"], "parts": [{"text": turn["content"]}]} for turn in context
        ]
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        if attachment is not None:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": attachment.mime_type,
                        "data": base64.b64encode(attachment.data).decode("ascii"),
                    }
                }
            )
        contents.append({"role": "user", "parts": parts})
        return {
            "contents": contents,
            "generationConfig": self.settings.to_payload(),
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_LOW_AND_ABOVE"}
                for category in self._SAFETY_CATEGORIES
            ],
        }

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    def _post(self, path: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        try:
            response = self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientError(f"Gemini request timeout: {exc}") from exc
        except httpx.NetworkError as exc:
            raise TransientError(f"Gemini connection reset: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"Gemini request failed: {exc}") from exc

        status = response.status_code
        if status < 400:
            return self._safe_json(response)

        message = self._error_message(response)
        if status in (401, 403):
            raise AuthenticationError(message or f"Gemini rejected the API key ({status})", status_code=status)
        if status == 429:
            raise RateLimitError(message or "Gemini rate limit exceeded (429)", status_code=status)
        if status in self._TRANSIENT_STATUS_CODES:
            raise TransientError(message or f"Gemini service overloaded ({status})", status_code=status)
        if status == 400:
            raise ClientConfigurationError(message or "Gemini rejected a malformed request (400)", status_code=status)
        raise RemoteError(message or f"Gemini request failed ({status})", status_code=status)

    def _error_message(self, response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return response.text or None
        if isinstance(body, Mapping):
            error = body.get("error")
            if isinstance(error, Mapping) and isinstance(error.get("message"), str):
                return error["message"]
        return None

    def _safe_json(self, response: httpx.Response) -> Mapping[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ClientConfigurationError("Gemini returned a non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise ClientConfigurationError("Gemini response was not a JSON object")
        return data

    def _parse_generation(self, data: Mapping[str, Any]) -> str:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            if isinstance(feedback, Mapping) and feedback.get("blockReason"):
                raise RemoteError(f"Gemini blocked the prompt ({feedback['blockReason']})")
            raise ClientConfigurationError("Gemini response missing candidates")

        content = candidates[0].get("content") if isinstance(candidates[0], Mapping) else None
        parts = content.get("parts") if isinstance(content, Mapping) else None
        if not isinstance(parts, list):
            raise RemoteError("No content generated. Please try again.")

        text = "".join(part.get("text", "") for part in parts if isinstance(part, Mapping))
        if not text.strip():
            raise RemoteError("No content generated. Please try again.")
        return text

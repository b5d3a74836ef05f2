"""Gemini calls with JSON normalization, one repair re-prompt and quota fallback.

Per structured call:

* primary model → clean/extract/parse (+ permissive repair)
* still invalid → one corrective re-prompt on the primary model
* quota error on the primary → fallback model, parsed once, no re-prompt

Transport failures are wrapped into ``AITransportError`` and never retried.
"""

import logging
from dataclasses import dataclass

from google import genai
from google.genai import types

from studenthub.logging_config import log_event
from studenthub.services import prompt_registry
from studenthub.services.ai_errors import (
    AIInvalidResponseError,
    AIQuotaError,
    AIServiceError,
    classify_provider_error,
)
from studenthub.services.model_json import ModelJsonError, build_envelope, parse_envelope


@dataclass(frozen=True)
class InlineBlob:
    """Binary prompt part (image, PDF) sent inline with the request."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ModelPolicy:
    primary_model: str = 'gemini-2.5-flash'
    fallback_model: str = 'gemini-2.0-flash'
    max_repair_attempts: int = 1
    max_repair_input_chars: int = 30000


def to_part(item):
    if isinstance(item, InlineBlob):
        return types.Part.from_bytes(data=item.data, mime_type=item.mime_type)
    if isinstance(item, str):
        return types.Part.from_text(text=item)
    return item


def build_contents(prompt):
    items = prompt if isinstance(prompt, (list, tuple)) else [prompt]
    return [types.Content(role='user', parts=[to_part(item) for item in items])]


class GeminiService:
    def __init__(self, client, policy=None, logger=None, max_output_tokens=32768):
        self.client = client
        self.policy = policy or ModelPolicy()
        self.logger = logger or logging.getLogger('studenthub')
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, config, logger=None):
        if not config.gemini_api_key:
            return None
        client = genai.Client(api_key=config.gemini_api_key)
        policy = ModelPolicy(
            primary_model=config.gemini_primary_model,
            fallback_model=config.gemini_fallback_model,
            max_repair_attempts=config.ai_max_repair_attempts,
            max_repair_input_chars=config.ai_json_repair_max_input_chars,
        )
        return cls(client, policy=policy, logger=logger)

    def _call_model(self, model, prompt):
        try:
            response = self.client.models.generate_content(
                model=model,
                contents=build_contents(prompt),
                config=types.GenerateContentConfig(max_output_tokens=self.max_output_tokens),
            )
        except Exception as exc:
            classified = classify_provider_error(exc)
            self.logger.error(f"Gemini API error ({model}, {classified.kind}): {exc}")
            raise classified from exc
        return getattr(response, 'text', '') or ''

    def _call_fallback(self, prompt, quota_error):
        log_event(
            logging.WARNING,
            'ai_model_fallback',
            primary_model=self.policy.primary_model,
            fallback_model=self.policy.fallback_model,
            retry_after_seconds=quota_error.retry_after_seconds,
        )
        try:
            return self._call_model(self.policy.fallback_model, prompt)
        except AIServiceError as fallback_error:
            if isinstance(fallback_error, AIQuotaError) and fallback_error.retry_after_seconds is not None:
                raise fallback_error
            raise quota_error from fallback_error

    def generate_text(self, prompt):
        try:
            return self._call_model(self.policy.primary_model, prompt)
        except AIQuotaError as quota_error:
            return self._call_fallback(prompt, quota_error)

    def generate_structured(self, prompt):
        try:
            raw_text = self._call_model(self.policy.primary_model, prompt)
        except AIQuotaError as quota_error:
            raw_text = self._call_fallback(prompt, quota_error)
            try:
                return parse_envelope(build_envelope(raw_text))
            except ModelJsonError:
                self.logger.error(f"Fallback model returned unparsable JSON. Raw text: {raw_text[:2000]}")
                raise quota_error
        return self._parse_with_repair_prompt(raw_text)

    def _parse_with_repair_prompt(self, raw_text):
        envelope = build_envelope(raw_text)
        attempts_left = max(0, int(self.policy.max_repair_attempts))
        while True:
            try:
                return parse_envelope(envelope)
            except ModelJsonError:
                self.logger.warning(f"Model JSON parse failed. Raw text: {envelope.raw_text[:2000]}")
                if attempts_left <= 0:
                    raise AIInvalidResponseError(raw_text=envelope.raw_text)
            attempts_left -= 1
            log_event(logging.WARNING, 'ai_json_repair_prompt', model=self.policy.primary_model)
            fix_prompt = prompt_registry.render(
                'json_fix',
                malformed_json=envelope.candidate_json[:self.policy.max_repair_input_chars],
            )
            envelope = build_envelope(self._call_model(self.policy.primary_model, fix_prompt))

"""Pulling JSON out of generative-model text.

Models wrap payloads in markdown fences or prose and emit near-valid JSON
(trailing commas, raw newlines inside strings, missing closers). Parsing
goes strict first, then through ``repair_json_text``.
"""

import json
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger('studenthub')

_FENCE_JSON_RE = re.compile(r'```json\s*\n?', re.IGNORECASE)
_FENCE_RE = re.compile(r'```\n?')

_CLOSERS = {'{': '}', '[': ']'}
_STRING_ESCAPES = {'\n': '\\n', '\r': '\\r', '\t': '\\t'}


class ModelJsonError(ValueError):
    def __init__(self, envelope, message='Model output is not valid JSON'):
        super().__init__(message)
        self.envelope = envelope


@dataclass(frozen=True)
class AIResponseEnvelope:
    raw_text: str
    cleaned_text: str
    candidate_json: str


def strip_code_fences(text):
    cleaned = _FENCE_JSON_RE.sub('', text or '')
    cleaned = _FENCE_RE.sub('', cleaned)
    return cleaned.strip()


def extract_json_candidate(cleaned_text):
    start = cleaned_text.find('{')
    end = cleaned_text.rfind('}')
    array_start = cleaned_text.find('[')
    # A top-level array of objects wraps the whole brace span.
    if array_start != -1 and (start == -1 or array_start < start):
        array_end = cleaned_text.rfind(']')
        if array_end > array_start and (start == -1 or array_end > end):
            return cleaned_text[array_start:array_end + 1]
    if start == -1 or end <= start:
        return cleaned_text
    return cleaned_text[start:end + 1]


def build_envelope(raw_text):
    raw_text = raw_text or ''
    cleaned = strip_code_fences(raw_text)
    return AIResponseEnvelope(
        raw_text=raw_text,
        cleaned_text=cleaned,
        candidate_json=extract_json_candidate(cleaned),
    )


def _drop_trailing_comma(buffer):
    index = len(buffer) - 1
    while index >= 0 and buffer[index].isspace():
        index -= 1
    if index >= 0 and buffer[index] == ',':
        del buffer[index]


def repair_json_text(candidate):
    """Best-effort repair for common model JSON mistakes.

    Removes trailing commas before closers, escapes raw control characters
    inside strings, inserts commas between adjacent containers, and appends
    missing closing quotes/brackets at the end.
    """
    out = []
    stack = []
    in_string = False
    escaped = False
    last_token = ''
    for char in (candidate or '').strip():
        if in_string:
            if escaped:
                escaped = False
                out.append(char)
            elif char == '\\':
                escaped = True
                out.append(char)
            elif char == '"':
                in_string = False
                last_token = char
                out.append(char)
            else:
                out.append(_STRING_ESCAPES.get(char, char))
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            if last_token in ('}', ']'):
                out.append(',')
            stack.append(_CLOSERS[char])
        elif char in ('}', ']'):
            _drop_trailing_comma(out)
            if stack and stack[-1] == char:
                stack.pop()
        out.append(char)
        if not char.isspace():
            last_token = char
    if in_string:
        if escaped:
            out.pop()
        out.append('"')
    _drop_trailing_comma(out)
    while stack:
        out.append(stack.pop())
    return ''.join(out)


def parse_envelope(envelope):
    try:
        return json.loads(envelope.candidate_json)
    except json.JSONDecodeError:
        pass
    repaired = repair_json_text(envelope.candidate_json)
    try:
        parsed = json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise ModelJsonError(envelope) from exc
    logger.warning("Model JSON required auto-repair before parsing")
    return parsed


def parse_model_json(raw_text):
    return parse_envelope(build_envelope(raw_text))

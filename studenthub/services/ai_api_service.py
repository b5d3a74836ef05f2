"""Business logic handlers for the AI study-assistant APIs."""

import threading

from studenthub.services import prompt_registry
from studenthub.services.ai_errors import AIServiceError
from studenthub.services.api_guard_service import ai_error_response, guard_request, rate_limit_headers
from studenthub.services.file_service import bytes_look_like_image, get_mime_type
from studenthub.services.gemini_service import InlineBlob

MAX_CHAT_MESSAGES = 10
MAX_EXPLAIN_CHARS = 2000
MAX_QUIZ_CHARS = 5000
MAX_TASK_CHARS = 500
MAX_EXPENSE_TEXT_CHARS = 2000
MAX_EXTRACT_PROMPT_CHARS = 2000
FALLBACK_QUOTE = '"Every expert was once a beginner. Keep going!" - Unknown'

EXTRACT_PROMPT_IDS = {
    'grades': 'extract_grades',
    'flashcards': 'extract_flashcards',
    'timetable': 'extract_timetable',
    'expenses': 'extract_expenses',
}


class QuoteCache:
    """One motivational quote per calendar day, refreshed after ``max_age_seconds``."""

    def __init__(self, max_age_seconds=3600):
        self.max_age_seconds = max_age_seconds
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, day_key, now):
        with self._lock:
            cached = self._entries.get(day_key)
            if cached and now - cached[1] < self.max_age_seconds:
                return cached[0]
            return None

    def set(self, day_key, quote, now):
        with self._lock:
            self._entries = {day_key: (quote, now)}


def _json_payload(request):
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _required_text(payload, field_name):
    value = payload.get(field_name)
    if not isinstance(value, str) or not value.strip():
        return ''
    return value


def format_conversation(messages):
    lines = []
    for message in messages[-MAX_CHAT_MESSAGES:]:
        if not isinstance(message, dict):
            continue
        speaker = 'Student' if message.get('role') == 'user' else 'Tutor'
        lines.append(f"{speaker}: {message.get('content', '')}")
    return '\n'.join(lines)


def chat(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'chat', require_ai=True)
    if error_response:
        return error_response
    messages = _json_payload(request).get('messages')
    if not isinstance(messages, list):
        return app_ctx.jsonify({'error': 'Messages array is required'}), 400
    prompt = prompt_registry.render('tutor_chat', conversation=format_conversation(messages))
    try:
        reply = app_ctx.ai.generate_text(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Chat API error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to generate response. Please try again.')
    return app_ctx.jsonify({'response': reply}), 200, rate_limit_headers(decision)


def explain(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'explain', require_ai=True)
    if error_response:
        return error_response
    text = _required_text(_json_payload(request), 'text')
    if not text:
        return app_ctx.jsonify({'error': 'Text is required'}), 400
    prompt = prompt_registry.render('explain', text=text[:MAX_EXPLAIN_CHARS])
    try:
        explanation = app_ctx.ai.generate_text(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Explain API error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to generate explanation')
    return app_ctx.jsonify({'explanation': explanation}), 200, rate_limit_headers(decision)


def quiz(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'quiz', require_ai=True)
    if error_response:
        return error_response
    content = _required_text(_json_payload(request), 'content')
    if not content:
        return app_ctx.jsonify({'error': 'Content is required'}), 400
    prompt = prompt_registry.render('quiz', content=content[:MAX_QUIZ_CHARS])
    try:
        questions = app_ctx.ai.generate_structured(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Quiz API error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to generate quiz')
    if isinstance(questions, dict) and isinstance(questions.get('questions'), list):
        questions = questions['questions']
    if not isinstance(questions, list) or not questions:
        app_ctx.logger.error(f"Quiz API returned an invalid quiz format for user {uid}")
        return app_ctx.jsonify({'error': 'Failed to generate quiz'}), 500
    return app_ctx.jsonify({'questions': questions}), 200, rate_limit_headers(decision)


def breakdown(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'breakdown', require_ai=True)
    if error_response:
        return error_response
    task = _required_text(_json_payload(request), 'task')
    if not task:
        return app_ctx.jsonify({'error': 'Task description is required'}), 400
    prompt = prompt_registry.render('task_breakdown', task=task[:MAX_TASK_CHARS])
    try:
        result = app_ctx.ai.generate_structured(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Breakdown API error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to break down task')
    subtasks = result.get('subtasks') if isinstance(result, dict) else None
    if not isinstance(subtasks, list):
        app_ctx.logger.error(f"Breakdown API returned no subtasks list for user {uid}")
        return app_ctx.jsonify({'error': 'Failed to break down task'}), 500
    return app_ctx.jsonify({'subtasks': subtasks}), 200, rate_limit_headers(decision)


def motivation(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'motivation')
    if error_response:
        return error_response
    now = app_ctx.time.time()
    day_key = app_ctx.today_iso()
    headers = rate_limit_headers(decision)

    cached_quote = app_ctx.quote_cache.get(day_key, now)
    if cached_quote:
        headers['X-Cache'] = 'HIT'
        return app_ctx.jsonify({'quote': cached_quote}), 200, headers

    if app_ctx.ai is None:
        return app_ctx.jsonify({'quote': FALLBACK_QUOTE}), 200, headers
    try:
        quote = app_ctx.ai.generate_text(prompt_registry.render('motivation')).strip()
    except AIServiceError as exc:
        app_ctx.logger.warning(f"⚠️ Motivation quote generation failed for user {uid}: {exc}")
        return app_ctx.jsonify({'quote': FALLBACK_QUOTE}), 200, headers
    if not quote:
        return app_ctx.jsonify({'quote': FALLBACK_QUOTE}), 200, headers
    app_ctx.quote_cache.set(day_key, quote, now)
    headers['X-Cache'] = 'MISS'
    return app_ctx.jsonify({'quote': quote}), 200, headers


def build_extract_prompt(extract_type, custom_prompt=''):
    prompt_id = EXTRACT_PROMPT_IDS.get(extract_type)
    if prompt_id:
        return prompt_registry.render(prompt_id)
    instructions = str(custom_prompt or '').strip()[:MAX_EXTRACT_PROMPT_CHARS] or 'Analyze this image.'
    return prompt_registry.render('extract_custom', instructions=instructions)


def extract(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'ai_extract', require_ai=True)
    if error_response:
        return error_response
    upload = request.files.get('image')
    extract_type = str(request.form.get('type', '') or '').strip().lower()
    if upload is None or not extract_type:
        return app_ctx.jsonify({'error': 'Image and type are required'}), 400
    data = upload.read()
    if not data:
        return app_ctx.jsonify({'error': 'Uploaded image is empty'}), 400
    if not bytes_look_like_image(data):
        return app_ctx.jsonify({'error': 'Uploaded file is not a supported image'}), 400
    mime_type = str(upload.mimetype or '').strip() or get_mime_type(upload.filename)
    if mime_type == 'application/octet-stream':
        mime_type = get_mime_type(upload.filename, default='image/png')

    prompt = build_extract_prompt(extract_type, request.form.get('prompt', ''))
    try:
        result = app_ctx.ai.generate_structured([prompt, InlineBlob(data=data, mime_type=mime_type)])
    except AIServiceError as exc:
        app_ctx.logger.error(f"Extraction API error for user {uid} ({extract_type}): {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to parse AI response')
    return app_ctx.jsonify({'data': result}), 200, rate_limit_headers(decision)


def parse_expense(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'parse_expense', require_ai=True)
    if error_response:
        return error_response
    text = _required_text(_json_payload(request), 'text')
    if not text:
        return app_ctx.jsonify({'error': 'Text is required'}), 400
    prompt = prompt_registry.render('parse_expense', text=text[:MAX_EXPENSE_TEXT_CHARS])
    try:
        result = app_ctx.ai.generate_structured(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Parse expense error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to parse response')
    if not isinstance(result, dict):
        return app_ctx.jsonify({'error': 'Failed to parse response'}), 500
    return app_ctx.jsonify({'data': result}), 200, rate_limit_headers(decision)

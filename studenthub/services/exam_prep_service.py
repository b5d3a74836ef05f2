"""Exam-prep generation: module questions, flashcards and recap summaries.

The model is asked for a fixed JSON shape and the result is normalized
before anything is stored:

* questions trimmed, blank entries dropped, capped at ``MAX_QUESTIONS``
* exactly ``min(questions_per_module, len(questions))`` flagged most-likely
* flashcards trimmed and capped at ``FLASHCARDS_PER_MODULE``
* summary forced into point-wise markdown, or rebuilt from the cards
"""

import re

from studenthub.repositories import exam_prep_repo
from studenthub.services import prompt_registry
from studenthub.services.ai_errors import AIServiceError
from studenthub.services.api_guard_service import ai_error_response, guard_request, rate_limit_headers
from studenthub.services.file_service import (
    IMAGE_EXTENSIONS,
    OFFICE_EXTENSIONS,
    bytes_have_pdf_signature,
    bytes_look_like_image,
    download_storage_bytes,
    extract_office_text,
    get_extension,
    get_mime_type,
    normalize_storage_path,
)
from studenthub.services.gemini_service import InlineBlob

MAX_QUESTIONS = 10
FLASHCARDS_PER_MODULE = 15
MIN_ACCEPTED_FLASHCARDS = 5
MAX_GENERATION_ATTEMPTS = 3
MAX_SUMMARY_BULLETS = 12
MAX_STUDY_FILES = 20

EXAM_TYPE_GUIDANCE = {
    'midterm': 'Midterm: focus on likely short/medium questions, core definitions, and typical problem patterns.',
    'endterm': 'Endterm: include broader coverage, integration questions, and exam-style long answers where relevant.',
    'quiz': 'Quiz: focus on concise, high-yield questions and quick recall flashcards.',
    'final': 'Final: treat like endterm with comprehensive coverage and tricky edge cases.',
}

_SENTENCE_SPLIT_RE = re.compile(r'(?<=[.!?])\s+')
_MARKDOWN_PREFIXES = ('- ', '• ', '#', '|', '**')


def _clean_text(value):
    return value.strip() if isinstance(value, str) else ''


def _bounded_int(value, default, minimum, maximum):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    return min(max(parsed, minimum), maximum)


def ensure_point_wise_summary(summary):
    trimmed = _clean_text(summary)
    if not trimmed:
        return ''
    lines = [line.strip() for line in trimmed.splitlines() if line.strip()]
    if any(line.startswith(_MARKDOWN_PREFIXES) for line in lines):
        return trimmed
    sentences = [part.strip() for part in _SENTENCE_SPLIT_RE.split(trimmed) if part.strip()]
    sentences = sentences[:MAX_SUMMARY_BULLETS]
    if len(sentences) <= 1:
        return f"- {trimmed}"
    return '\n'.join(f"- {sentence}" for sentence in sentences)


def build_fallback_notes(questions, flashcards):
    lines = ['### Key Concepts (Flashcards)']
    for card in flashcards:
        lines.append(f"- **{card['front']}**: {card['back']}")
    lines.append('\n### Study Questions')
    for question in questions:
        lines.append(f"- **{question['question']}**\n  {question['answer']}")
    return '\n'.join(lines)


def _enforce_most_likely(questions, expected_most_likely):
    desired = min(max(0, expected_most_likely), len(questions))
    flagged = [index for index, item in enumerate(questions) if item['is_most_likely']]
    if len(flagged) > desired:
        for index in flagged[desired:]:
            questions[index]['is_most_likely'] = False
    elif len(flagged) < desired:
        missing = desired - len(flagged)
        for item in questions:
            if missing <= 0:
                break
            if not item['is_most_likely']:
                item['is_most_likely'] = True
                missing -= 1
    return questions


def normalize_generated_content(content, *, max_questions=MAX_QUESTIONS, expected_most_likely=1,
                                expected_flashcards=FLASHCARDS_PER_MODULE):
    content = content if isinstance(content, dict) else {}
    raw_questions = content.get('questions') if isinstance(content.get('questions'), list) else []
    raw_flashcards = content.get('flashcards') if isinstance(content.get('flashcards'), list) else []

    questions = []
    for item in raw_questions:
        if not isinstance(item, dict):
            continue
        question = _clean_text(item.get('question'))
        answer = _clean_text(item.get('answer'))
        if not question or not answer:
            continue
        questions.append({
            'question': question,
            'answer': answer,
            'is_most_likely': bool(item.get('is_most_likely')),
            'visual_search_query': _clean_text(item.get('visual_search_query')) or None,
        })
    questions = _enforce_most_likely(questions[:max(0, max_questions)], expected_most_likely)

    flashcards = []
    for item in raw_flashcards:
        if not isinstance(item, dict):
            continue
        front = _clean_text(item.get('front'))
        back = _clean_text(item.get('back'))
        if front and back:
            flashcards.append({'front': front, 'back': back})
    flashcards = flashcards[:max(0, expected_flashcards)]

    summary = ensure_point_wise_summary(content.get('summary'))
    if not summary:
        summary = build_fallback_notes(questions, flashcards)
    return {'questions': questions, 'flashcards': flashcards, 'summary': summary}


def is_acceptable(normalized, min_questions, max_questions):
    question_count = len(normalized['questions'])
    return (
        min_questions <= question_count <= max_questions
        and len(normalized['flashcards']) >= MIN_ACCEPTED_FLASHCARDS
        and bool(normalized['summary'].strip())
    )


def generate_with_count_enforcement(ai, base_parts, *, expected_most_likely, max_questions=MAX_QUESTIONS,
                                    expected_flashcards=FLASHCARDS_PER_MODULE, max_attempts=MAX_GENERATION_ATTEMPTS,
                                    logger=None):
    """Generate module content, re-prompting with a corrective suffix until the counts fit.

    After ``max_attempts`` the last normalized result is returned as-is.
    """
    min_questions = max(1, expected_most_likely)
    retry_suffix = prompt_registry.render(
        'exam_prep_retry',
        max_questions=max_questions,
        expected_most_likely=expected_most_likely,
        expected_flashcards=expected_flashcards,
    )
    last = None
    for attempt in range(1, max_attempts + 1):
        parts = list(base_parts) if attempt == 1 else list(base_parts) + [f"\n\n{retry_suffix}"]
        generated = ai.generate_structured(parts)
        last = normalize_generated_content(
            generated,
            max_questions=max_questions,
            expected_most_likely=expected_most_likely,
            expected_flashcards=expected_flashcards,
        )
        if is_acceptable(last, min_questions, max_questions):
            return last
        if logger is not None:
            logger.warning(
                f"⚠️ Exam-prep attempt {attempt} out of bounds: "
                f"{len(last['questions'])} questions, {len(last['flashcards'])} flashcards"
            )
    return last or {'questions': [], 'flashcards': [], 'summary': ''}


def build_module_prompt(module, subject):
    subject_name = _clean_text(subject.get('name')) or 'this subject'
    exam_type = _clean_text(subject.get('exam_type')).lower() or 'endterm'
    important_questions = _clean_text(subject.get('important_questions'))
    global_context = ''
    priority_rule = ''
    if important_questions:
        global_context = (
            '\n\nSUBJECT-WIDE IMPORTANT MIDTERM/ENDTERM QUESTIONS & SYLLABUS CONTEXT:\n'
            f"{important_questions}\n"
        )
        priority_rule = '\n- PRIORITIZE the important topics/questions provided above when creating questions and flashcards.'
    return prompt_registry.render(
        'exam_prep',
        subject_name=subject_name,
        module_name=_clean_text(module.get('name')) or 'Untitled module',
        module_number=module.get('module_number', ''),
        exam_type=exam_type,
        exam_guidance=EXAM_TYPE_GUIDANCE.get(exam_type, EXAM_TYPE_GUIDANCE['endterm']),
        global_context=global_context,
        max_questions=MAX_QUESTIONS,
        most_likely_count=expected_most_likely_for(subject),
        marks_per_question=_bounded_int(subject.get('marks_per_question'), 10, 1, 100),
        flashcards_per_module=FLASHCARDS_PER_MODULE,
        priority_rule=priority_rule,
    )


def expected_most_likely_for(subject):
    return _bounded_int(subject.get('questions_per_module'), 1, 0, MAX_QUESTIONS)


def study_file_part(key, data):
    """Turn downloaded bytes into a prompt part, or return None when unsupported."""
    extension = get_extension(key)
    if extension == 'pdf' and bytes_have_pdf_signature(data):
        return InlineBlob(data=data, mime_type=get_mime_type(key))
    if extension in IMAGE_EXTENSIONS and bytes_look_like_image(data):
        return InlineBlob(data=data, mime_type=get_mime_type(key))
    if extension in OFFICE_EXTENSIONS:
        text = extract_office_text(data, extension).strip()
        if text:
            return f"\n\n[File: {key}]\n{text}"
    return None


def collect_study_parts(app_ctx, file_paths):
    """Download study files and return ``(parts, skipped_files)``."""
    parts = []
    skipped = []
    prefix = app_ctx.config.exam_files_prefix
    for raw_path in file_paths[:MAX_STUDY_FILES]:
        key = normalize_storage_path(raw_path, prefix)
        if not key:
            continue
        if app_ctx.bucket is None:
            skipped.append({'file_path': key, 'reason': 'Storage is not configured'})
            continue
        try:
            data = download_storage_bytes(app_ctx.bucket, key, prefix)
        except Exception as exc:
            app_ctx.logger.error(f"Download failed for {key}: {exc}")
            skipped.append({'file_path': key, 'reason': 'Download failed'})
            continue
        try:
            part = study_file_part(key, data)
        except Exception as exc:
            app_ctx.logger.warning(f"⚠️ Could not read study file {key}: {exc}")
            part = None
        if part is None:
            skipped.append({'file_path': key, 'reason': 'Unsupported file type or no text extracted'})
            continue
        parts.append(part)
    return parts, skipped


def _syllabus_parts(app_ctx, subject):
    syllabus_path = _clean_text(subject.get('syllabus_path'))
    if not syllabus_path or app_ctx.bucket is None:
        return []
    prefix = app_ctx.config.exam_files_prefix
    key = normalize_storage_path(syllabus_path, prefix)
    try:
        data = download_storage_bytes(app_ctx.bucket, key, prefix)
    except Exception as exc:
        app_ctx.logger.warning(f"⚠️ Syllabus {key} could not be attached: {exc}")
        return []
    app_ctx.logger.info(f"Attached syllabus: {key}")
    return [
        'SYLLABUS DOCUMENT (Use this to prioritize questions and scope):',
        InlineBlob(data=data, mime_type=get_mime_type(key, default='application/pdf')),
    ]


def _failure_response(app_ctx, message, stage, exc):
    body = {'error': message}
    if app_ctx.config.is_dev_like:
        body['stage'] = stage
        body['message'] = str(exc)
    return app_ctx.jsonify(body), 500


def process_module(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'exam_prep', require_ai=True)
    if error_response:
        return error_response
    payload = request.get_json(silent=True) or {}
    module_id = str(payload.get('module_id', '') or '').strip() if isinstance(payload, dict) else ''
    if not module_id:
        return app_ctx.jsonify({'error': 'Missing module_id'}), 400

    stage = 'db.exam_modules'
    try:
        module = exam_prep_repo.get_owned_doc(exam_prep_repo.module_doc_ref(app_ctx.db, module_id), uid)
        if module is None:
            return app_ctx.jsonify({'error': 'Module not found'}), 404
        subject = {}
        subject_id = str(module.get('subject_id', '') or '')
        if subject_id:
            stage = 'db.exam_subjects'
            subject = exam_prep_repo.get_owned_doc(exam_prep_repo.subject_doc_ref(app_ctx.db, subject_id), uid) or {}

        file_paths = payload.get('file_paths')
        if isinstance(file_paths, list):
            file_paths = [path for path in file_paths if isinstance(path, str) and path.strip()]
        else:
            file_paths = []
        if not file_paths:
            stage = 'db.exam_module_files'
            file_paths = exam_prep_repo.list_module_file_paths(app_ctx.db, uid, module_id)

        stage = 'storage.download'
        parts = [build_module_prompt(module, subject)]
        parts.extend(_syllabus_parts(app_ctx, subject))
        if file_paths:
            file_parts, skipped = collect_study_parts(app_ctx, file_paths)
            if not file_parts:
                return app_ctx.jsonify({
                    'error': 'No supported content could be extracted from the uploaded files. '
                             'Please upload a PDF, or a PPTX/DOCX with selectable text.',
                    'details': skipped or None,
                }), 415
            parts.extend(file_parts)
        else:
            app_ctx.logger.info(f"No study files for module {module_id}; generating from topic only.")
            parts.append(prompt_registry.render(
                'exam_prep_no_files',
                subject_name=_clean_text(subject.get('name')) or 'this subject',
                module_name=_clean_text(module.get('name')) or 'Untitled module',
                exam_type=_clean_text(subject.get('exam_type')).lower() or 'endterm',
            ))

        stage = 'ai.generate'
        result = generate_with_count_enforcement(
            app_ctx.ai,
            parts,
            expected_most_likely=expected_most_likely_for(subject),
            logger=app_ctx.logger,
        )

        stage = 'db.replace_content'
        exam_prep_repo.replace_module_content(app_ctx.db, uid, module_id, result['questions'], result['flashcards'])
        stage = 'db.update_module'
        exam_prep_repo.module_doc_ref(app_ctx.db, module_id).update({
            'status': 'ready',
            'summary': result['summary'],
            'updated_at': app_ctx.time.time(),
        })
    except AIServiceError as exc:
        app_ctx.logger.error(f"Exam-prep generation failed for module {module_id} at {stage}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to process module')
    except Exception as exc:
        app_ctx.logger.error(f"Exam-prep processing error for module {module_id} at {stage}: {exc}")
        return _failure_response(app_ctx, 'Failed to process module', stage, exc)

    return app_ctx.jsonify({
        'success': True,
        'question_count': len(result['questions']),
        'flashcard_count': len(result['flashcards']),
    }), 200, rate_limit_headers(decision)


def analyze_syllabus(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'exam_prep', require_ai=True)
    if error_response:
        return error_response
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    subject_id = str(payload.get('subject_id', '') or '').strip()
    syllabus_path = str(payload.get('syllabus_path', '') or '').strip()
    if not subject_id or not syllabus_path:
        return app_ctx.jsonify({'error': 'Missing required fields'}), 400

    stage = 'db.exam_subjects'
    try:
        subject_ref = exam_prep_repo.subject_doc_ref(app_ctx.db, subject_id)
        if exam_prep_repo.get_owned_doc(subject_ref, uid) is None:
            return app_ctx.jsonify({'error': 'Subject not found'}), 404

        stage = 'storage.download.syllabus'
        prefix = app_ctx.config.exam_files_prefix
        key = normalize_storage_path(syllabus_path, prefix)
        try:
            if app_ctx.bucket is None:
                raise RuntimeError('Storage is not configured')
            data = download_storage_bytes(app_ctx.bucket, key, prefix)
        except Exception as exc:
            app_ctx.logger.error(f"Syllabus download error ({key}): {exc}")
            return app_ctx.jsonify({'error': 'Failed to download syllabus'}), 500

        stage = 'ai.generate'
        important_topics = app_ctx.ai.generate_text([
            prompt_registry.render('syllabus_analysis'),
            InlineBlob(data=data, mime_type=get_mime_type(key, default='application/pdf')),
        ]).strip()

        stage = 'db.update_subject'
        subject_ref.update({
            'important_questions': important_topics,
            'syllabus_path': key,
            'updated_at': app_ctx.time.time(),
        })
    except AIServiceError as exc:
        app_ctx.logger.error(f"Syllabus analysis failed for subject {subject_id}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to analyze syllabus')
    except Exception as exc:
        app_ctx.logger.error(f"Syllabus analysis error for subject {subject_id} at {stage}: {exc}")
        return _failure_response(app_ctx, 'Internal Server Error', stage, exc)

    return app_ctx.jsonify({'success': True, 'important_topics': important_topics}), 200, rate_limit_headers(decision)


def shrink_summary(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'exam_prep', require_ai=True)
    if error_response:
        return error_response
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    module_id = str(payload.get('module_id', '') or '').strip()
    current_summary = _clean_text(payload.get('current_summary'))
    if not module_id:
        return app_ctx.jsonify({'error': 'Missing module_id'}), 400
    if not current_summary:
        return app_ctx.jsonify({'error': 'Missing current_summary'}), 400

    try:
        module_ref = exam_prep_repo.module_doc_ref(app_ctx.db, module_id)
        if exam_prep_repo.get_owned_doc(module_ref, uid) is None:
            return app_ctx.jsonify({'error': 'Module not found'}), 404
        condensed = app_ctx.ai.generate_text(
            prompt_registry.render('shrink_summary', current_summary=current_summary)
        ).strip()
        module_ref.update({'summary': condensed, 'updated_at': app_ctx.time.time()})
    except AIServiceError as exc:
        app_ctx.logger.error(f"Shrink summary failed for module {module_id}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to shrink summary')
    except Exception as exc:
        app_ctx.logger.error(f"Shrink summary error for module {module_id}: {exc}")
        return app_ctx.jsonify({'error': 'Failed to shrink summary'}), 500

    return app_ctx.jsonify({'summary': condensed}), 200, rate_limit_headers(decision)

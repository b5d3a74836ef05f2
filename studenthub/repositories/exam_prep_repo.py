"""Firestore accessors for exam-prep subjects, modules and generated content."""

from .query_utils import apply_where, where_uid


def module_doc_ref(db, module_id):
    return db.collection('exam_modules').document(module_id)


def subject_doc_ref(db, subject_id):
    return db.collection('exam_subjects').document(subject_id)


def get_owned_doc(doc_ref, uid):
    """Return the document data when it exists and belongs to ``uid``."""
    snapshot = doc_ref.get()
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    if data.get('uid', '') != uid:
        return None
    return data


def list_module_file_paths(db, uid, module_id):
    query = apply_where(where_uid(db, 'exam_module_files', uid), 'module_id', '==', module_id)
    records = [doc.to_dict() or {} for doc in query.stream()]
    records.sort(key=lambda item: item.get('created_at') or 0)
    return [str(item.get('file_path', '') or '') for item in records if item.get('file_path')]


def replace_module_content(db, uid, module_id, questions, flashcards):
    for collection_name in ('exam_questions', 'exam_flashcards'):
        existing = list(apply_where(where_uid(db, collection_name, uid), 'module_id', '==', module_id).stream())
        for doc in existing:
            doc.reference.delete()
    for question in questions:
        db.collection('exam_questions').document().set({
            'uid': uid,
            'module_id': module_id,
            'question': question['question'],
            'answer': question['answer'],
            'is_most_likely': bool(question.get('is_most_likely')),
            'visual_search_query': question.get('visual_search_query') or None,
        })
    for card in flashcards:
        db.collection('exam_flashcards').document().set({
            'uid': uid,
            'module_id': module_id,
            'front': card['front'],
            'back': card['back'],
        })

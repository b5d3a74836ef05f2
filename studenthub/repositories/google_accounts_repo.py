"""Firestore accessors for linked Google accounts and legacy profile tokens."""

from .query_utils import apply_where, where_uid


def find_account_for_service(db, uid, service):
    query = apply_where(where_uid(db, 'google_accounts', uid), 'services', 'array_contains', service).limit(1)
    for doc in query.stream():
        return doc.to_dict() or {}
    return None


def get_profile(db, uid):
    snapshot = db.collection('profiles').document(uid).get()
    return (snapshot.to_dict() or {}) if snapshot.exists else None

"""Firestore accessors for daily user activity."""

from .query_utils import DESCENDING, where_uid

COLLECTION = 'user_activity'


def activity_doc_ref(db, uid, activity_date):
    return db.collection(COLLECTION).document(f"{uid}__{activity_date}")


def list_recent_activity_dates(db, uid, limit):
    query = where_uid(db, COLLECTION, uid).order_by('activity_date', direction=DESCENDING).limit(limit)
    dates = []
    for doc in query.stream():
        value = str((doc.to_dict() or {}).get('activity_date', '') or '').strip()
        if value:
            dates.append(value)
    return dates

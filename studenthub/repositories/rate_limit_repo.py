"""Firestore accessors for rate limit counters and hit logs."""

COUNTER_COLLECTION = 'rate_limit_counters'
LOG_COLLECTION = 'rate_limit_logs'


def counter_doc_ref(db, counter_id, collection_name=COUNTER_COLLECTION):
    return db.collection(collection_name).document(counter_id)


def add_hit_log(db, payload):
    return db.collection(LOG_COLLECTION).add(payload)

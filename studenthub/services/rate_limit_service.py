"""Fixed-window rate limiting keyed by (identity, endpoint).

The decision algorithm lives in ``decide`` and is shared by every store, so
swapping the in-memory map for the Firestore-backed counters changes where
records live, never how requests are counted.
"""

import hashlib
import logging
import math
import threading
import time
from dataclasses import dataclass

from studenthub.logging_config import log_event
from studenthub.repositories import rate_limit_repo


@dataclass
class RateLimitRecord:
    count: int
    reset_time_ms: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int

    @property
    def retry_after_seconds(self):
        return max(1, int(math.ceil(self.reset_in_ms / 1000.0)))


def now_ms(time_module=time):
    return int(time_module.time() * 1000)


def rate_limit_key(identity, endpoint):
    return f"{identity}:{endpoint}"


def is_expired(record, now):
    return record.reset_time_ms <= now


def decide(record, max_requests, window_ms, now):
    """Return ``(record_to_store, decision)``; the record is None when it must stay untouched."""
    if record is None or is_expired(record, now):
        fresh = RateLimitRecord(count=1, reset_time_ms=now + window_ms)
        return fresh, RateLimitDecision(allowed=True, remaining=max_requests - 1, reset_in_ms=window_ms)
    if record.count >= max_requests:
        return None, RateLimitDecision(allowed=False, remaining=0, reset_in_ms=record.reset_time_ms - now)
    updated = RateLimitRecord(count=record.count + 1, reset_time_ms=record.reset_time_ms)
    return updated, RateLimitDecision(
        allowed=True,
        remaining=max_requests - updated.count,
        reset_in_ms=record.reset_time_ms - now,
    )


class InMemoryRateLimitStore:
    """Process-local records. Each worker process enforces its own quota."""

    def __init__(self, sweep_threshold=1000):
        self.sweep_threshold = int(sweep_threshold)
        self._records = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def get(self, key):
        with self._lock:
            return self._records.get(key)

    def _sweep_locked(self, now):
        expired = [key for key, record in self._records.items() if is_expired(record, now)]
        for key in expired:
            del self._records[key]
        return len(expired)

    def check(self, key, max_requests, window_ms, now):
        with self._lock:
            if len(self._records) > self.sweep_threshold:
                self._sweep_locked(now)
            record, decision = decide(self._records.get(key), max_requests, window_ms, now)
            if record is not None:
                self._records[key] = record
            return decision


def counter_doc_id(key):
    return hashlib.sha256(key.encode('utf-8')).hexdigest()


class FirestoreRateLimitStore:
    """Counters shared across instances through Firestore transactions.

    Expired counter documents are left for a Firestore TTL policy on
    ``expires_at``; when Firestore is unreachable the fallback store decides.
    """

    def __init__(self, db, firestore_module, fallback=None, logger=None, collection_name=rate_limit_repo.COUNTER_COLLECTION):
        self.db = db
        self.firestore_module = firestore_module
        self.fallback = fallback if fallback is not None else InMemoryRateLimitStore()
        self.logger = logger or logging.getLogger('studenthub')
        self.collection_name = collection_name

    def check(self, key, max_requests, window_ms, now):
        try:
            return self._check_transactional(key, max_requests, window_ms, now)
        except Exception as exc:
            self.logger.warning(f"⚠️ Firestore rate limit check failed for {key}, using in-memory fallback: {exc}")
            return self.fallback.check(key, max_requests, window_ms, now)

    def _check_transactional(self, key, max_requests, window_ms, now):
        counter_ref = rate_limit_repo.counter_doc_ref(self.db, counter_doc_id(key), self.collection_name)
        transaction = self.db.transaction()

        @self.firestore_module.transactional
        def _txn(txn):
            snapshot = counter_ref.get(transaction=txn)
            existing = None
            if snapshot.exists:
                data = snapshot.to_dict() or {}
                existing = RateLimitRecord(
                    count=int(data.get('count', 0) or 0),
                    reset_time_ms=int(data.get('reset_time_ms', 0) or 0),
                )
            record, decision = decide(existing, max_requests, window_ms, now)
            if record is not None:
                txn.set(counter_ref, {
                    'key': key,
                    'count': record.count,
                    'reset_time_ms': record.reset_time_ms,
                    'updated_at_ms': now,
                    'expires_at_ms': record.reset_time_ms + window_ms,
                })
            return decision

        return _txn(transaction)


class RateLimiter:
    def __init__(self, store, time_module=time):
        self.store = store
        self.time_module = time_module

    def check_rate_limit(self, identity, endpoint, max_requests, window_ms):
        if int(max_requests) < 1 or int(window_ms) < 1:
            raise ValueError('max_requests and window_ms must be positive')
        key = rate_limit_key(identity, endpoint)
        return self.store.check(key, int(max_requests), int(window_ms), now_ms(self.time_module))


def build_rate_limiter(config, *, db=None, firestore_module=None, logger=None, time_module=time):
    memory_store = InMemoryRateLimitStore(sweep_threshold=config.rate_limit_sweep_threshold)
    if config.rate_limit_backend == 'firestore' and db is not None and firestore_module is not None:
        store = FirestoreRateLimitStore(db, firestore_module, fallback=memory_store, logger=logger)
    else:
        store = memory_store
    return RateLimiter(store, time_module=time_module)


def log_rate_limit_hit(endpoint, identity, decision, *, db, logger, time_module=time):
    log_event(
        logging.INFO,
        'rate_limit_hit',
        endpoint=endpoint,
        identity=identity,
        retry_after_seconds=decision.retry_after_seconds,
    )
    if db is None:
        return False
    try:
        rate_limit_repo.add_hit_log(db, {
            'endpoint': str(endpoint or '')[:64],
            'uid': str(identity or '')[:128],
            'retry_after_seconds': decision.retry_after_seconds,
            'created_at': time_module.time(),
        })
        return True
    except Exception as exc:
        if logger is not None:
            logger.info(f"⚠️ Could not store rate limit log ({endpoint}): {exc}")
        return False

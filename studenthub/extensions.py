"""Runtime services shared by request handlers.

Handlers receive a ``Runtime`` as ``app_ctx``; tests build one directly
with fakes instead of touching Firebase or Gemini.
"""

import json
import os
import time
from datetime import datetime, timezone

import firebase_admin
import sentry_sdk
from firebase_admin import auth, credentials, firestore, storage
from flask import current_app, jsonify
from sentry_sdk.integrations.flask import FlaskIntegration

from studenthub.services import auth_service
from studenthub.services.ai_api_service import QuoteCache
from studenthub.services.gemini_service import GeminiService
from studenthub.services.google_service import build_google_client
from studenthub.services.rate_limit_service import build_rate_limiter

EXTENSION_KEY = 'studenthub'


class Runtime:
    def __init__(self, *, config, logger, db=None, bucket=None, firestore_module=None, auth_module=None,
                 ai=None, rate_limiter=None, quote_cache=None, google_factory=None, classroom_factory=None,
                 time_module=time, clock=None):
        self.config = config
        self.logger = logger
        self.db = db
        self.bucket = bucket
        self.firestore = firestore_module
        self.auth_module = auth_module
        self.ai = ai
        self.rate_limiter = rate_limiter or build_rate_limiter(config, logger=logger, time_module=time_module)
        self.quote_cache = quote_cache or QuoteCache(config.motivation_cache_seconds)
        self.google_factory = google_factory or (lambda api_name, tokens: build_google_client(api_name, tokens, config))
        self.classroom_factory = classroom_factory or (lambda tokens: self.google_factory('classroom', tokens))
        self.time = time_module
        self.clock = clock
        self.jsonify = jsonify

    def verify_firebase_token(self, request):
        return auth_service.verify_firebase_token(request, self.auth_module, self.logger)

    def utcnow(self):
        if self.clock is not None:
            return self.clock()
        return datetime.now(timezone.utc)

    def today_iso(self):
        return self.utcnow().date().isoformat()


def init_sentry(config, logger):
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.sentry_traces_sample_rate,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    logger.info(f"Sentry enabled ({config.sentry_environment})")
    return True


def init_firebase(config, logger):
    """Return ``(db, bucket)``; both None when credentials are unavailable."""
    try:
        if os.path.exists('firebase-credentials.json'):
            cred = credentials.Certificate('firebase-credentials.json')
        else:
            if not config.firebase_credentials:
                raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
            cred = credentials.Certificate(json.loads(config.firebase_credentials))
        if not firebase_admin._apps:
            options = {'storageBucket': config.firebase_storage_bucket} if config.firebase_storage_bucket else None
            firebase_admin.initialize_app(cred, options)
        db = firestore.client()
        bucket = storage.bucket() if config.firebase_storage_bucket else None
        return db, bucket
    except Exception as exc:
        logger.info(f"⚠️ Firebase initialization skipped: {exc}")
        return None, None


def build_runtime(config, logger):
    db, bucket = init_firebase(config, logger)
    try:
        ai = GeminiService.from_config(config, logger=logger)
    except Exception as exc:
        logger.info(f"⚠️ Gemini client disabled: {exc}")
        ai = None
    if ai is None:
        logger.info("⚠️ GEMINI_API_KEY not set; AI features are disabled.")
    rate_limiter = build_rate_limiter(config, db=db, firestore_module=firestore, logger=logger)
    return Runtime(
        config=config,
        logger=logger,
        db=db,
        bucket=bucket,
        firestore_module=firestore,
        auth_module=auth,
        ai=ai,
        rate_limiter=rate_limiter,
    )


def init_extensions(app, runtime) -> None:
    app.extensions.setdefault(EXTENSION_KEY, {})
    app.extensions[EXTENSION_KEY]['runtime'] = runtime


def get_runtime():
    return current_app.extensions[EXTENSION_KEY]['runtime']

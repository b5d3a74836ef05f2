import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}

# endpoint -> (max requests, window in milliseconds)
RATE_LIMIT_DEFAULTS = {
    'chat': (20, 60_000),
    'quiz': (5, 60_000),
    'explain': (10, 60_000),
    'breakdown': (10, 60_000),
    'motivation': (5, 60_000),
    'ai_extract': (10, 60 * 60 * 1000),
    'parse_expense': (20, 60_000),
    'citations': (10, 60_000),
    'exam_prep': (5, 10 * 60 * 1000),
}


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, 0.0), 1.0)


def _env_str(name, default=''):
    return (os.getenv(name, default) or default).strip()


def load_rate_limits() -> Dict[str, Tuple[int, int]]:
    limits = {}
    for endpoint, (max_requests, window_ms) in RATE_LIMIT_DEFAULTS.items():
        prefix = endpoint.upper()
        limits[endpoint] = (
            safe_int_env(f'{prefix}_RATE_LIMIT_MAX_REQUESTS', max_requests, minimum=1, maximum=10000),
            safe_int_env(f'{prefix}_RATE_LIMIT_WINDOW_MS', window_ms, minimum=1000, maximum=86_400_000),
        )
    return limits


def parse_cors_allowed_origins():
    raw = _env_str('CORS_ALLOWED_ORIGINS')
    if raw:
        return frozenset(part.strip().lower() for part in raw.split(',') if part.strip())
    return frozenset({
        'http://127.0.0.1:3000',
        'http://localhost:3000',
        'http://127.0.0.1:5000',
        'http://localhost:5000',
    })


def resolve_runtime_env():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object, read from the environment when instantiated."""

    flask_secret_key: str = field(default_factory=lambda: os.getenv('FLASK_SECRET_KEY', ''))
    log_level: str = field(default_factory=lambda: _env_str('LOG_LEVEL', 'INFO').upper())
    runtime_env: str = field(default_factory=resolve_runtime_env)
    sentry_dsn: str = field(default_factory=lambda: _env_str('SENTRY_DSN_BACKEND'))
    sentry_environment: str = field(default_factory=lambda: _env_str('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production') or 'production'))
    sentry_release: str = field(default_factory=lambda: _env_str('SENTRY_RELEASE', 'studenthub'))
    sentry_traces_sample_rate: float = field(default_factory=lambda: safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0))

    gemini_api_key: str = field(default_factory=lambda: _env_str('GEMINI_API_KEY'))
    gemini_primary_model: str = field(default_factory=lambda: _env_str('GEMINI_PRIMARY_MODEL', 'gemini-2.5-flash'))
    gemini_fallback_model: str = field(default_factory=lambda: _env_str('GEMINI_FALLBACK_MODEL', 'gemini-2.0-flash'))
    ai_json_repair_max_input_chars: int = field(default_factory=lambda: safe_int_env('AI_JSON_REPAIR_MAX_INPUT_CHARS', 30000, minimum=1000, maximum=200000))
    ai_max_repair_attempts: int = field(default_factory=lambda: safe_int_env('AI_MAX_REPAIR_ATTEMPTS', 1, minimum=0, maximum=3))

    firebase_credentials: str = field(default_factory=lambda: _env_str('FIREBASE_CREDENTIALS'))
    firebase_storage_bucket: str = field(default_factory=lambda: _env_str('FIREBASE_STORAGE_BUCKET'))
    exam_files_prefix: str = field(default_factory=lambda: _env_str('EXAM_FILES_PREFIX', 'exam-pdfs').strip('/'))

    rate_limit_backend: str = field(default_factory=lambda: _env_str('RATE_LIMIT_BACKEND', 'memory').lower())
    rate_limit_sweep_threshold: int = field(default_factory=lambda: safe_int_env('RATE_LIMIT_SWEEP_THRESHOLD', 1000, minimum=10, maximum=1_000_000))
    rate_limits: Dict[str, Tuple[int, int]] = field(default_factory=load_rate_limits)

    google_client_id: str = field(default_factory=lambda: _env_str('GOOGLE_CLIENT_ID'))
    google_client_secret: str = field(default_factory=lambda: _env_str('GOOGLE_CLIENT_SECRET'))
    calendar_time_zone: str = field(default_factory=lambda: _env_str('CALENDAR_TIME_ZONE', 'Asia/Kolkata'))

    cors_allowed_origins: frozenset = field(default_factory=parse_cors_allowed_origins)
    motivation_cache_seconds: int = field(default_factory=lambda: safe_int_env('MOTIVATION_CACHE_SECONDS', 3600, minimum=60, maximum=86400))
    max_upload_bytes: int = field(default_factory=lambda: safe_int_env('MAX_UPLOAD_BYTES', 10 * 1024 * 1024, minimum=1024, maximum=100 * 1024 * 1024))

    @property
    def is_dev_like(self):
        return self.runtime_env in DEV_ENV_NAMES

    def rate_limit_for(self, endpoint):
        return self.rate_limits.get(endpoint) or RATE_LIMIT_DEFAULTS[endpoint]


def load_config() -> AppConfig:
    config = AppConfig()
    if not config.is_dev_like and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config

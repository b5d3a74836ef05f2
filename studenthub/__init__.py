import uuid

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .config import load_config
from .extensions import build_runtime, get_runtime, init_extensions, init_sentry
from .logging_config import configure_logging, logger


def apply_cors_headers(response):
    origin = str(request.headers.get('Origin', '') or '').strip()
    if not origin or not request.path.startswith('/api/'):
        return response
    if origin.lower() not in get_runtime().config.cors_allowed_origins:
        return response
    response.headers['Access-Control-Allow-Origin'] = origin
    response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type, X-Request-ID'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PATCH, OPTIONS'
    response.headers['Access-Control-Expose-Headers'] = 'Retry-After, X-RateLimit-Remaining, X-Cache, X-Request-ID'
    return response


def register_request_hooks(app):
    @app.before_request
    def handle_api_options_preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return apply_cors_headers(app.make_default_options_response())
        return None

    @app.before_request
    def attach_request_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        sentry_sdk.set_tag('request.id', request_id)
        sentry_sdk.set_tag('route.path', request.path)
        sentry_sdk.set_tag('route.method', request.method)

    @app.after_request
    def attach_response_context(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return apply_cors_headers(response)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_entity_too_large(_error):
        limit_mb = get_runtime().config.max_upload_bytes // (1024 * 1024)
        return jsonify({'error': f"Upload too large. Maximum upload size is {limit_mb}MB."}), 413

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description or error.name}), error.code
        logger.exception(f"Unhandled error on {request.method} {request.path}: {error}")
        return jsonify({'error': 'Internal Server Error'}), 500


def create_app(config=None, runtime=None):
    """App factory: configuration, logging, runtime services and routes."""
    load_dotenv()
    config = config or load_config()
    configure_logging(config.log_level)
    init_sentry(config, logger)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.flask_secret_key or 'studenthub-dev'
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_bytes
    init_extensions(app, runtime or build_runtime(config, logger))
    register_request_hooks(app)

    from .blueprints import activity_bp, ai_bp, citations_bp, exam_prep_bp, google_bp

    for blueprint in (ai_bp, citations_bp, exam_prep_bp, activity_bp, google_bp):
        app.register_blueprint(blueprint)

    @app.route('/healthz')
    def healthz():
        return jsonify({'status': 'ok'}), 200

    return app

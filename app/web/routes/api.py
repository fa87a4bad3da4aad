"""
API routes for Readarr Request.
"""

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from app.api.base import APIError
from app.config import ConfigurationError, InstanceSettings, Settings, SettingsNotConfigured
from app.search.requester import RequestError
from app.utils.logging import get_logger

logger = get_logger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')


def _service():
    return current_app.extensions['request_service']


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _parse_settings(payload) -> Settings:
    try:
        return Settings.model_validate(payload)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e.errors()[0].get('msg', 'invalid value')}")


def _parse_instance(payload) -> InstanceSettings:
    try:
        instance = InstanceSettings.model_validate(payload)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e.errors()[0].get('msg', 'invalid value')}")
    if not instance.baseUrl or not instance.apiKey:
        raise ConfigurationError("Missing base URL or API key.")
    return instance


def _parse_existing_id(value):
    try:
        existing_id = int(value)
    except (TypeError, ValueError):
        return None
    return existing_id if existing_id > 0 else None


@api_bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@api_bp.route('/settings')
def get_settings():
    """Get current instance settings."""
    settings = _service().settings_manager.get_settings()
    if settings is None:
        return jsonify({'configured': False})
    return jsonify({'configured': True, 'settings': settings.model_dump()})


@api_bp.route('/settings', methods=['POST'])
def save_settings():
    """Validate and store instance settings."""
    payload = _json_body().get('settings')
    if not payload:
        return jsonify({'error': 'Missing settings payload.'}), 400

    _service().settings_manager.save_settings(_parse_settings(payload))
    return jsonify({'status': 'ok'})


@api_bp.route('/settings/test', methods=['POST'])
def test_settings():
    """Test connection to one Readarr instance."""
    body = _json_body()
    if body.get('instance') not in ('ebooks', 'audio'):
        return jsonify({'error': 'Invalid instance.'}), 400

    instance = _parse_instance(body.get('settings') or {})
    _service().test_connection(instance)
    return jsonify({'status': 'ok'})


@api_bp.route('/settings/defaults', methods=['POST'])
def resolve_defaults():
    """Show the root folder and quality profile a Readarr instance would use."""
    instance = _parse_instance(_json_body().get('settings') or {})
    defaults = _service().resolve_defaults(instance)
    return jsonify({
        'rootFolderPath': defaults.root_folder_path,
        'qualityProfileId': defaults.quality_profile_id,
    })


@api_bp.route('/search')
def search():
    """Search both instances."""
    term = (request.args.get('term') or '').strip()
    if not term:
        return jsonify({'error': 'Missing search term.'}), 400

    items = _service().search(term)
    return jsonify({'items': [item.to_dict() for item in items]})


def _request_book(name: str):
    body = _json_body()
    book = body.get('book')
    existing_id = _parse_existing_id(body.get('existingId'))

    if not book and existing_id is None:
        return jsonify({'error': 'Missing book payload.'}), 400

    _service().request(name, book, existing_id)
    return jsonify({'status': 'ok'})


@api_bp.route('/request/ebook', methods=['POST'])
def request_ebook():
    return _request_book('ebooks')


@api_bp.route('/request/audiobook', methods=['POST'])
def request_audiobook():
    return _request_book('audio')


@api_bp.errorhandler(SettingsNotConfigured)
def handle_not_configured(error):
    return jsonify({'error': str(error)}), 412


@api_bp.errorhandler(ConfigurationError)
@api_bp.errorhandler(RequestError)
def handle_caller_error(error):
    logger.warning("Request rejected", path=request.path, error=error.message)
    return jsonify({'error': error.message}), error.status


@api_bp.errorhandler(APIError)
def handle_api_error(error):
    logger.error(
        "Readarr request failed",
        path=request.path,
        status_code=error.status_code,
        error=str(error)
    )
    return jsonify({'error': error.user_message}), error.status_code or 502


@api_bp.errorhandler(Exception)
def handle_unexpected(error):
    logger.exception("Request failed", path=request.path, error=str(error))
    return jsonify({'error': 'Unexpected error.'}), 500

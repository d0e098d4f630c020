# faceaccess/web/management.py
"""
Web Management API - remote enrollment, verification and settings.

Endpoints:
- GET    /api/identities         - Enrolled identities with embedding counts
- POST   /api/enroll             - Enroll a face (form: name, file: image)
- DELETE /api/identities/<name>  - Remove an identity
- POST   /api/verify             - Verify an uploaded image
- GET    /api/settings           - Current thresholds
- POST   /api/settings           - Update the spoof threshold (JSON)

Errors are returned as {"success": false, "error": {"code", "message"}} with
the HTTP status of the FaceAccessError subclass.
"""
import logging

from flask import Blueprint, jsonify, request

from ..core.errors import DecodeFailure, FaceAccessError, NotInitialized
from ..processing.image_io import decode_image

logger = logging.getLogger(__name__)

management_bp = Blueprint('management', __name__)

# Set from main.py / tests via init_management()
_service = None


def init_management(service):
    """Attach the VerificationService used by the endpoints."""
    global _service
    _service = service
    logger.info("[Web Management] Initialized with verification service")


def _get_service():
    if _service is None:
        raise NotInitialized("Verification service is not initialized")
    return _service


def _read_upload():
    """Decode the uploaded `image` file. Raises DecodeFailure."""
    image_file = request.files.get('image')
    if image_file is None or image_file.filename == '':
        raise DecodeFailure("Missing image file")
    return decode_image(image_file.read())


def _error_response(error: FaceAccessError):
    return jsonify({'success': False, 'error': error.to_dict()}), error.status_code


@management_bp.errorhandler(FaceAccessError)
def handle_face_access_error(error):
    logger.warning(f"[Web Management] {error.code}: {error.message}")
    return _error_response(error)


@management_bp.route('/api/identities', methods=['GET'])
def api_get_identities():
    """
    GET /api/identities

    Response:
        [{"name": "Alice", "embedding_count": 2}, ...]
    """
    service = _get_service()
    return jsonify([
        {'name': identity.name, 'embedding_count': identity.embedding_count}
        for identity in service.list_identities()
    ])


@management_bp.route('/api/enroll', methods=['POST'])
def api_enroll():
    """
    POST /api/enroll

    Form data:
        - name: Display name
        - image: Image file (JPEG/PNG)

    Response:
        {"success": true, "name": "...", "embedding_count": n}
    """
    service = _get_service()

    name = request.form.get('name', '').strip()
    if not name:
        return jsonify({'success': False,
                        'error': {'code': 'INVALID_NAME', 'message': 'Missing name'}}), 400

    image = _read_upload()
    identity = service.enroll(name, image)
    return jsonify({
        'success': True,
        'message': f'Enrolled "{identity.name}". Total: {identity.embedding_count} embeddings',
        'name': identity.name,
        'embedding_count': identity.embedding_count,
    })


@management_bp.route('/api/identities/<name>', methods=['DELETE'])
def api_delete_identity(name):
    """DELETE /api/identities/<name>"""
    service = _get_service()
    name = name.strip()

    if not service.delete_identity(name):
        return jsonify({'success': False,
                        'error': {'code': 'NOT_FOUND', 'message': f'"{name}" is not enrolled'}}), 404

    return jsonify({'success': True, 'message': f'Deleted "{name}"'})


@management_bp.route('/api/verify', methods=['POST'])
def api_verify():
    """
    POST /api/verify (file: image)

    Response:
        VerificationOutcome as JSON; 200 for both granted and denied
    """
    service = _get_service()
    image = _read_upload()
    return jsonify(service.verify(image).to_dict())


@management_bp.route('/api/settings', methods=['GET', 'POST'])
def api_settings():
    """
    GET  /api/settings
    POST /api/settings  {"spoof_threshold": 0.1}

    The spoof threshold is clamped to [0.001, 0.5].
    """
    service = _get_service()

    if request.method == 'POST':
        payload = request.get_json(silent=True) or {}
        if 'spoof_threshold' in payload:
            try:
                service.spoof_threshold = float(payload['spoof_threshold'])
            except (TypeError, ValueError):
                return jsonify({'success': False,
                                'error': {'code': 'INVALID_VALUE',
                                          'message': 'spoof_threshold must be a number'}}), 400

    return jsonify({
        'spoof_threshold': service.spoof_threshold,
        'verification_threshold': service.verification_threshold,
        'duplicate_threshold': service.duplicate_threshold,
        'preprocessing_mode': service.preprocessing_mode.value,
    })


# ============================================================================
# INTEGRATION FUNCTION
# ============================================================================

def register_management_routes(app):
    """Register the blueprint on a Flask app."""
    app.register_blueprint(management_bp)
    logger.info("[Web Management] Routes registered: /api/identities, /api/enroll, "
                "/api/verify, /api/settings")

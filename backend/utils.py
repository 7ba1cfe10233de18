"""Backend utility functions for the Inspect360 API."""
from flask import jsonify, request, g
from pydantic import ValidationError as PydanticValidationError
from shared.schemas import Caller
from shared.validation import (
    ValidationError, PermissionDenied, NotFound, ConflictError, StoreError, format_pydantic_errors, parse_model
)
import logging


logger = logging.getLogger(__name__)


def api_error(message, status_code=400, log_level='warning', details=None):
    """
    Standardized API error response with consistent logging.

    Args:
        message (str): Error message for the client
        status_code (int): HTTP status code
        log_level (str): Logging level ('debug', 'info', 'warning', 'error', 'critical')
        details (dict, optional): Extra keys returned to the client and logged

    Returns:
        Flask response: JSON error response
    """
    log_func = getattr(logger, log_level, logger.warning)
    if details:
        log_func(f"API Error ({status_code}): {message} - Details: {details}")
    else:
        log_func(f"API Error ({status_code}): {message}")

    body = {'error': message}
    if details:
        body.update(details)
    return jsonify(body), status_code


def handle_api_exception(e, operation="operation"):
    """
    Map domain exceptions to JSON error responses.

    Args:
        e (Exception): The exception that occurred
        operation (str): Description of the operation being performed

    Returns:
        Flask response: JSON error response
    """
    if isinstance(e, ValidationError):
        details = {}
        if e.field_id is not None:
            details['field_id'] = e.field_id
        if e.section_id is not None:
            details['section_id'] = e.section_id
        if e.check is not None:
            details['check'] = e.check.model_dump(mode='json')
        return api_error(str(e), 400, details=details or None)
    if isinstance(e, PydanticValidationError):
        return api_error(format_pydantic_errors(e), 400)
    if isinstance(e, PermissionDenied):
        return api_error(str(e), 403)
    if isinstance(e, NotFound):
        return api_error(str(e), 404, 'info')
    if isinstance(e, ConflictError):
        return api_error(str(e), 409)
    if isinstance(e, StoreError):
        logger.error(f"Store failure during {operation}: {e.__cause__}")
        return api_error(f"Failed to {operation}", 503, 'error')

    logger.error(f"Exception during {operation}: {str(e)}", exc_info=True)
    return api_error(f"Failed to {operation}", 500, 'error')


def json_payload():
    """Request body as a dict; a missing or non-object body is a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Invalid JSON payload')
    return data


def parse_body(model_class):
    return parse_model(model_class, json_payload())


def current_caller():
    """Caller for the authenticated request user."""
    user = getattr(g, 'user', None)
    if user is None:
        raise PermissionDenied('Authentication required')
    return Caller.from_user(user)


def to_json(value):
    """Serialize a pydantic model or list of models for jsonify."""
    if isinstance(value, list):
        return [to_json(v) for v in value]
    return value.model_dump(mode='json')

"""
Helpers shared by the API blueprints: the JSON envelope and request parsing.
"""
from flask import jsonify, request

from errors import NotFound, ValidationFailed
from extensions import db


def success_response(data=None, message='OK', status=200):
    body = {'success': True, 'status': status, 'message': message}
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def error_response(message, status=400, errors=None):
    body = {'success': False, 'status': status, 'message': message}
    if errors:
        body['errors'] = errors
    return jsonify(body), status


def parse_body(schema):
    """Validate the JSON body against a pydantic schema"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')
    return schema.model_validate(data)


def parse_query(schema):
    """Validate the query string against a pydantic schema"""
    return schema.model_validate(request.args.to_dict())


def get_or_404(model, record_id, entity):
    """Fetch a row by primary key or raise the API's not-found error"""
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFound.for_id(entity, record_id)
    return record


def apply_changes(record, changes):
    if not changes:
        raise ValidationFailed('No fields provided to update')
    for attr, value in changes.items():
        setattr(record, attr, value)
    return record

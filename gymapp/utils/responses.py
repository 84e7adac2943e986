"""JSON response envelopes used by every API blueprint."""
from flask import jsonify, request


def success_response(data=None, message='Success', status_code=200, pagination=None):
    body = {'status': 'success', 'message': message, 'data': data}
    if pagination is not None:
        body['pagination'] = pagination
    return jsonify(body), status_code


def get_json_body():
    """Request JSON as a dict; anything else becomes an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}

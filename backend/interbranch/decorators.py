# Overview: Caller resolution decorator for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import NotFoundError, ValidationError
from .services.branch_access_service import get_active_assignment
from .validation import coerce_int


def _caller_id_from_request():
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and payload.get("user_id") not in (None, ""):
        return payload.get("user_id")
    return request.args.get("user_id")


def require_caller(f):
    """
    Resolve the calling user and their active branch assignment.

    Authentication happens upstream; the caller's user id arrives as
    `user_id` in the JSON body or the query string and is trusted.

    Sets the following Flask g attributes:
    - g.current_user: The User making the request
    - g.assignment: The UserBranchAssignment the workflow acts on

    Returns 400 if user_id is missing or not an integer, 404 if the user
    is unknown, inactive, or has no active branch assignment.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = _caller_id_from_request()
        if raw_user_id in (None, ""):
            return jsonify({"error": "Missing required fields: user_id"}), 400

        try:
            user_id = coerce_int(raw_user_id, "user_id", minimum=1)
            assignment = get_active_assignment(user_id)
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404

        g.current_user = assignment.user
        g.assignment = assignment

        return f(*args, **kwargs)

    return decorated_function

from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, g, abort

from models import storage
from models.user import User
from models.schemas.user import UserOutSchema
from utils.decorators import jwt_required, roles_required

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.get("/users")
@roles_required(["admin"])
def list_users():
    """
    List all users - admin
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
      403: { description: Insufficient role }
    """
    session = storage.get_session()
    page, limit = parse_pagination()

    rows = (
        session.query(User)
        .order_by(User.username.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": storage.count(User)}
        }
    )


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify(
        {
            "data": user_out_schema.dump(g.current_user)
        }
    ), 200

from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates_schema

from models.user import Role


def _strip(data, key):
    if isinstance(data, dict) and isinstance(data.get(key), str):
        data = dict(data)
        data[key] = data[key].strip()
    return data


class RegisterSchema(Schema):
    class Meta:
        # extra fields (e.g. "role") are dropped, never applied
        unknown = EXCLUDE

    username = fields.String(required=True, validate=validate.Length(min=3, max=20))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=8))
    confirm_password = fields.String(required=True, load_only=True, data_key="confirmPassword")

    @pre_load
    def normalize(self, data, **kwargs):
        return _strip(data, "username")

    @validates_schema
    def validate_password_match(self, data, **kwargs):
        if data.get("password") != data.get("confirm_password"):
            raise ValidationError("confirmPassword must match password", "confirmPassword")


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        return _strip(data, "username")


class AuthResponseSchema(Schema):
    """Body of a successful login/refresh; the refresh token only travels as a cookie."""
    access_token = fields.String(data_key="accessToken")
    role = fields.String(attribute="user.role")
    user_id = fields.String(attribute="user.user_id", data_key="userId")
    username = fields.String(attribute="user.username")


class UserOutSchema(Schema):
    id = fields.String()
    username = fields.String()
    role = fields.Enum(Role, by_value=True)
    created_at = fields.DateTime(data_key="createdAt")

from marshmallow import EXCLUDE, Schema, fields, pre_load, validate, validates

from models.schemas.common import (
    normalize_email,
    normalize_phone,
    validate_password_length,
    validate_phone,
)


class RegisterSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    full_name = fields.String(required=True, validate=validate.Length(min=2, max=100))
    phone = fields.String(allow_none=True, load_default=None)
    role = fields.String(allow_none=True, load_default=None)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = normalize_email(data["email"])
            if "phone" in data:
                data["phone"] = normalize_phone(data["phone"])
        return data

    @validates("password")
    def _validate_password(self, value, **kwargs):
        validate_password_length(value)

    @validates("phone")
    def _validate_phone(self, value, **kwargs):
        validate_phone(value)


class LoginSchema(Schema):
    """`identifier` is an email or a phone number; `email` is accepted as an alias."""
    class Meta:
        unknown = EXCLUDE

    identifier = fields.String(load_default=None)
    email = fields.String(load_default=None)
    password = fields.String(required=True, load_only=True)


class GoogleSignInSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    id_token = fields.String(required=True, validate=validate.Length(min=1))


class UpdateProfileSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    full_name = fields.String(validate=validate.Length(min=2, max=100))
    phone = fields.String(allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "phone" in data:
            data = dict(data)
            data["phone"] = normalize_phone(data["phone"])
        return data

    @validates("phone")
    def _validate_phone(self, value, **kwargs):
        validate_phone(value)


class ChangePasswordSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    current_password = fields.String(allow_none=True, load_default=None, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def _validate_new_password(self, value, **kwargs):
        validate_password_length(value)


class UserOutSchema(Schema):
    """Public user view: never carries the password hash."""
    id = fields.String()
    email = fields.String()
    full_name = fields.String()
    role = fields.String()
    tenant_id = fields.String(allow_none=True)
    avatar_url = fields.String(allow_none=True)


class ProfileOutSchema(UserOutSchema):
    phone = fields.String(allow_none=True)
    is_verified = fields.Boolean()
    has_password = fields.Boolean()
    created_at = fields.DateTime()

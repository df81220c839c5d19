"""
Unit tests for admin bearer tokens.
"""
from datetime import timedelta

from members_api.core.security import create_access_token, create_admin_token, decode_admin_token

SECRET = "test-secret"


def test_admin_token_round_trip():
    """Test a freshly issued admin token decodes to its subject."""
    token = create_admin_token("admin@example.com", secret_key=SECRET)
    assert decode_admin_token(token, secret_key=SECRET) == "admin@example.com"


def test_token_without_admin_role_is_rejected():
    """Test tokens lacking the admin role are not accepted."""
    token = create_access_token({"sub": "reader@example.com"}, secret_key=SECRET)
    assert decode_admin_token(token, secret_key=SECRET) is None


def test_expired_token_is_rejected():
    """Test expired tokens are rejected."""
    token = create_admin_token("admin@example.com", expires_delta=timedelta(minutes=-5), secret_key=SECRET)
    assert decode_admin_token(token, secret_key=SECRET) is None


def test_token_signed_with_other_key_is_rejected():
    """Test tokens signed with a different key are rejected."""
    token = create_admin_token("admin@example.com", secret_key="other-secret")
    assert decode_admin_token(token, secret_key=SECRET) is None

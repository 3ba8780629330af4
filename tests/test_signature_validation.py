"""
Tests for webhook signature validation.
"""

import hashlib
import hmac

from crm_whatsapp.providers.meta_cloud.webhook import validate_signature


def _sign(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class TestSignatureValidation:
    """Tests for webhook signature validation."""

    def test_valid_signature_meta(self):
        """Test valid HMAC-SHA256 signature validation."""
        app_secret = "test_secret_key"
        payload = b'{"test": "data"}'

        signature_header = f"sha256={_sign(payload, app_secret)}"

        assert validate_signature(payload, signature_header, app_secret) is True

    def test_invalid_signature_meta(self):
        """Test invalid signature is rejected."""
        payload = b'{"test": "data"}'

        assert validate_signature(payload, "sha256=invalid_signature_here", "test_secret_key") is False

    def test_missing_signature_prefix(self):
        """Test signature without sha256= prefix is rejected."""
        app_secret = "test_secret_key"
        payload = b'{"test": "data"}'

        # Valid hash but wrong format
        assert validate_signature(payload, _sign(payload, app_secret), app_secret) is False

    def test_empty_signature(self):
        """Test empty signature is rejected."""
        assert validate_signature(b"payload", "", "secret") is False
        assert validate_signature(b"payload", None, "secret") is False

    def test_tampered_body(self):
        """A signature for a different body is rejected."""
        app_secret = "my_app_secret"
        signature = _sign(b'{"object": "whatsapp_business_account"}', app_secret)

        assert validate_signature(b'{"object": "tampered"}', f"sha256={signature}", app_secret) is False

"""PKCE and state helpers for the authorization code flow (RFC 7636)."""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_code_verifier() -> str:
    """Return a verifier built from 32 random bytes, URL-safe base64 encoded."""
    return secrets.token_urlsafe(32)


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state() -> str:
    return secrets.token_hex(16)


__all__ = ["code_challenge_s256", "generate_code_verifier", "generate_state"]

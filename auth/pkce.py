from __future__ import annotations

import base64
import hashlib
import secrets
import string

from tunestats.errors import VerifierUnavailable

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-_"
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


def generate_verifier(length: int = MAX_VERIFIER_LENGTH) -> str:
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"Code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}, got {length}."
        )
    try:
        return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))
    except (NotImplementedError, OSError) as error:
        raise VerifierUnavailable(f"Could not generate a PKCE code verifier: {error}") from error


def derive_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def generate_state() -> str:
    return secrets.token_urlsafe(24)

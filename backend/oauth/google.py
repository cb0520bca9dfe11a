"""Google Sign-In: ID token verification and profile extraction."""

import os
from typing import Dict, Any
from google.oauth2 import id_token
from google.auth.transport import requests

GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class GoogleOAuthError(Exception):
    """Raised when a Google ID token cannot be trusted."""
    pass


def verify_google_token(token: str) -> Dict[str, Any]:
    """
    Verify a Google ID token and extract the user's profile.

    Args:
        token: The ID token from Google Sign-In

    Returns:
        Dictionary containing: google_id, email, email_verified, name, picture

    Raises:
        GoogleOAuthError: If token verification fails
    """
    if not GOOGLE_CLIENT_ID:
        raise GoogleOAuthError("GOOGLE_CLIENT_ID environment variable not set")

    try:
        idinfo = id_token.verify_oauth2_token(token, requests.Request(), GOOGLE_CLIENT_ID)
    except ValueError as e:
        raise GoogleOAuthError(f"Token verification failed: {str(e)}")

    if idinfo.get('iss') not in GOOGLE_ISSUERS:
        raise GoogleOAuthError("Invalid token issuer")

    if not idinfo.get('email'):
        raise GoogleOAuthError("Token carries no email")

    return {
        'google_id': idinfo['sub'],
        'email': idinfo['email'],
        'email_verified': idinfo.get('email_verified', False),
        'name': idinfo.get('name'),
        'picture': idinfo.get('picture') or "",
    }

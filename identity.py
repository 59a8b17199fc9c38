"""Verification of Google sign-in tokens issued through Firebase Auth."""
import logging

from flask import current_app
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from errors import AuthenticationError

logger = logging.getLogger(__name__)


def verify_google_token(token):
    """Return the verified claims of a Firebase ID token.

    Only ``sub`` (the Firebase uid), ``email`` and ``email_verified`` from the
    returned claims may be used as identity; nothing the client sends next to
    the token is trusted.
    """
    project_id = current_app.config.get('FIREBASE_PROJECT_ID')
    if not project_id:
        logger.error("FIREBASE_PROJECT_ID is not configured, refusing Google sign-in")
        raise AuthenticationError('Google sign-in is not configured')
    try:
        claims = id_token.verify_firebase_token(token, google_requests.Request(), audience=project_id)
    except ValueError as exc:
        logger.warning(f"Rejected Google ID token: {exc}")
        raise AuthenticationError('Invalid Google credentials') from exc
    if not claims or not claims.get('sub'):
        raise AuthenticationError('Invalid Google credentials')
    return claims

from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken


class OptionalJWTAuthentication(JWTAuthentication):
    """JWT authentication for public endpoints.

    A missing, expired or malformed bearer token never rejects the request;
    the caller is simply treated as anonymous.
    """

    def authenticate(self, request):
        try:
            return super().authenticate(request)
        except (InvalidToken, AuthenticationFailed):
            return None

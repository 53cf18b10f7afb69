from __future__ import annotations

import re
from urllib.parse import unquote

from django.http import HttpResponsePermanentRedirect


class NormalizeVerificationPathMiddleware:
    """Redirect malformed verification URLs to their canonical paths.

    Some PDF viewers insert whitespace when copying long URLs. Browsers then
    percent-encode it (e.g. `/api/%20%20verify/<id>/`), producing a 404.
    This middleware strips that whitespace from the verification prefix.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        raw_uri = (
            str(request.META.get("RAW_URI") or "")
            or str(request.META.get("REQUEST_URI") or "")
            or request.get_full_path()
        )

        if not raw_uri:
            return self.get_response(request)

        path_part, sep, query = raw_uri.partition("?")
        decoded_path = unquote(path_part)

        # Only normalize the public verification route.
        normalized_path = re.sub(r"^/api/\s*verify\s*/", "/api/verify/", decoded_path)

        if normalized_path != decoded_path:
            location = normalized_path + (sep + query if query else "")
            return HttpResponsePermanentRedirect(location)

        return self.get_response(request)

"""Bearer token authentication.

The middleware never rejects a request itself: it records who the caller
is (or that their token was bad) on ``request.state`` and lets
``get_identity`` decide, so public routes keep working without a token.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from promptarena.security.identity import decode_token, identity_from_claims

BEARER_PREFIX = "bearer "


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.identity = None
        request.state.token_rejected = False

        header = request.headers.get("authorization", "")
        if header[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX:
            try:
                claims = decode_token(header[len(BEARER_PREFIX):].strip())
            except ValueError:
                request.state.token_rejected = True
            else:
                request.state.identity = identity_from_claims(claims)
                request.state.token_rejected = request.state.identity is None
        return await call_next(request)

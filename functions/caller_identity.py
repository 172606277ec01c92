from typing import Optional
from fastapi import Request
from jose import jwt, JWTError
from config import SECRET_KEY, ALGORITHM


def get_caller_identity(request: Request) -> Optional[str]:
    """
    Return the caller's user id from a bearer token, or None for anonymous.

    Tokens are issued by the auth service with the user id in the "id" claim.
    An invalid or expired token is treated as anonymous; the auth layer is the
    one that rejects it.
    """
    cached = getattr(request.state, "caller_id", None)
    if cached is not None:
        return cached or None

    caller_id = ""
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
            user_id = payload.get("id")
            if user_id is not None:
                caller_id = str(user_id)
        except JWTError:
            caller_id = ""

    request.state.caller_id = caller_id
    return caller_id or None

"""
Authentication helpers.

Security model:
- Read-only catalog endpoints are trusted based on network placement.
- Admin actions (scan, reset) require a dedicated Bearer token and fail
  explicitly. With no token configured, every admin request is refused.
"""

from fastapi import Request, HTTPException


def require_admin_token(request: Request):
    """
    Enforce admin authorization using a dedicated Bearer token.

    Used by admin POST endpoints where failures should be explicit
    (401/403) rather than silent.
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing admin token")

    expected = request.app.state.settings.admin_scan_token
    token = auth.removeprefix("Bearer ").strip()
    if not expected or token != expected:
        raise HTTPException(status_code=403, detail="Invalid admin token")

from fastapi import Request, HTTPException

SESSION_HEADER = "X-Session-Id"

def get_session_id(request: Request) -> str:
    session_id = (request.headers.get(SESSION_HEADER) or "").strip()
    if not session_id or len(session_id) > 64:
        raise HTTPException(status_code=401, detail={"error": "session_required", "message": f"Missing {SESSION_HEADER} header"})
    return session_id

def get_admin_capability(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()

"""
HealthPartner Backoffice — Authentication & Roles
Role-based sign-in with JWT tokens. There are no passwords: a caller picks
one of the two built-in personas (back-office operator or hospital user).
"""
from datetime import datetime, timedelta, timezone
from fastapi import Request, HTTPException

from backoffice.config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS, AUTH_ENABLED, ROLES, DEFAULT_ROLE
)

# ============================================================
# PERSONAS
# ============================================================
PERSONAS = {
    "operator": {"id": "u_operator", "name": "Backoffice Admin", "email": "admin@healthpartner.com"},
    "hospital": {"id": "u_hospital_1", "name": "Hospital São Lucas", "email": "contato@saolucas.com.br"},
}


def sign_in(role: str) -> dict:
    role = (role or "").lower()
    if role not in ROLES:
        raise ValueError(f"Invalid role: {role!r}. Must be one of: {', '.join(ROLES)}")
    user = {**PERSONAS[role], "role": role}
    return {"token": create_jwt(user), "user": user}


# ============================================================
# JWT
# ============================================================
import jwt as pyjwt

def create_jwt(user: dict) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user["id"], "email": user["email"], "name": user["name"],
        "role": user["role"],
        "exp": now + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return pyjwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)

def decode_jwt(token: str) -> dict:
    try:
        return pyjwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except pyjwt.InvalidTokenError:
        raise HTTPException(401, "Invalid token")

# ============================================================
# REQUEST HELPERS
# ============================================================
def _user_from_request(request: Request) -> dict:
    """User from the Bearer token. Empty dict if there is none or it is invalid."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        try:
            payload = decode_jwt(auth[7:])
        except HTTPException:
            return {}
        return {"id": payload["sub"], "email": payload["email"],
                "name": payload["name"], "role": payload["role"], "authenticated": True}
    return {}

async def get_current_user(request: Request) -> dict:
    """Dependency: authenticated user, or the default persona when auth is off."""
    user = _user_from_request(request)
    if user:
        return user
    if not AUTH_ENABLED:
        role = request.headers.get("X-User-Role", "operator").lower()
        if role not in ROLES:
            role = DEFAULT_ROLE
        return {**PERSONAS[role], "role": role, "authenticated": False}
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        raise HTTPException(401, "Invalid or expired token")
    raise HTTPException(401, "Authentication required")

# ============================================================
# RBAC
# ============================================================
def require_role(role: str):
    """Dependency: require at least the level of `role`."""
    min_level = ROLES[role]["level"]

    async def checker(request: Request):
        user = await get_current_user(request)
        role_info = ROLES.get(user["role"], ROLES[DEFAULT_ROLE])
        if role_info["level"] < min_level:
            raise HTTPException(403, f"Requires role '{role}'. Your role: {user['role']}")
        return user
    return checker

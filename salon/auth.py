import base64
import json
import logging
import time

import httpx
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .errors import PermissionDeniedError
from .models import Role, User

logger = logging.getLogger(__name__)

security = HTTPBearer()

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

# Cache for Google's public keys
_cached_keys = None


async def get_google_public_keys():
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys:
        logger.debug("✅ Using cached Google public keys")
        return _cached_keys

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(GOOGLE_CERTS_URL)
            if response.status_code == 200:
                _cached_keys = response.json()
                logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
                return _cached_keys
            logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


def _b64decode(segment: str) -> bytes:
    missing = -len(segment) % 4
    return base64.urlsafe_b64decode(segment + "=" * missing)


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token: RS256 signature against Google's x509
    certificates, then audience, issuer, expiry and issued-at claims.
    """
    global _cached_keys

    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Firebase not configured")

    try:
        parts = token.split(".")
        if len(parts) != 3:
            raise HTTPException(status_code=401, detail="Invalid token format")
        header_b64, payload_b64, signature_b64 = parts

        try:
            header = json.loads(_b64decode(header_b64))
        except ValueError as e:
            logger.error(f"❌ Failed to decode token header: {str(e)}")
            raise HTTPException(status_code=401, detail="Invalid token header") from e

        kid = header.get("kid")
        if header.get("alg") != "RS256":
            logger.error(f"❌ Invalid token algorithm: {header.get('alg')}")
            raise HTTPException(status_code=401, detail="Invalid token algorithm")
        if not kid:
            raise HTTPException(status_code=401, detail="Token missing key ID")

        public_keys = await get_google_public_keys()
        if not public_keys or kid not in public_keys:
            logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing cache")
            _cached_keys = None
            public_keys = await get_google_public_keys()
            if not public_keys or kid not in public_keys:
                raise HTTPException(status_code=401, detail="Unable to verify token signature")

        cert = load_pem_x509_certificate(public_keys[kid].encode(), default_backend())

        try:
            cert.public_key().verify(
                _b64decode(signature_b64),
                f"{header_b64}.{payload_b64}".encode(),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except Exception as e:
            logger.error(f"❌ Token signature verification failed: {str(e)}")
            raise HTTPException(status_code=401, detail="Invalid token signature") from e

        claims = json.loads(_b64decode(payload_b64))

        if claims.get("aud") != FIREBASE_PROJECT_ID:
            logger.error("❌ Token audience mismatch")
            raise HTTPException(status_code=401, detail="Invalid token audience")

        if claims.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
            logger.error("❌ Token issuer mismatch")
            raise HTTPException(status_code=401, detail="Invalid token issuer")

        now = time.time()
        if claims.get("exp", 0) < now:
            raise HTTPException(
                status_code=401,
                detail="Token has expired. Please refresh your session.",
                headers={"X-Token-Expired": "true"},
            )

        # 60 seconds of clock skew
        if claims.get("iat", 0) > now + 60:
            logger.warning("⚠️ Token issued in the future")
            raise HTTPException(status_code=401, detail="Invalid token")

        return claims

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Token verification failed: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=401, detail="Token verification failed") from e


def _split_name(name: str) -> tuple:
    parts = (name or "").strip().split(" ", 1)
    nombre = parts[0] or None
    apellido = parts[1] if len(parts) > 1 else None
    return nombre, apellido


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the Firebase token to a User, creating a client account on first sight"""
    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received (length {len(token)})")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = await verify_firebase_token(token)

    # Firebase ID tokens use 'sub' as the user ID claim
    firebase_uid = claims.get("sub") or claims.get("user_id")
    email = claims.get("email")
    if not firebase_uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()

    if not user:
        nombre, apellido = _split_name(claims.get("name", ""))
        logger.info(f"🆕 Creating new user: {email}")
        user = User(
            firebase_uid=firebase_uid,
            email=email or f"{firebase_uid}@firebase.local",
            nombre=nombre,
            apellido=apellido,
            rol=Role.CLIENT.value,
        )
        db.add(user)
        try:
            db.commit()
            db.refresh(user)
        except IntegrityError as e:
            db.rollback()
            logger.error(f"❌ Email {email} is already registered to another account")
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            ) from e

    if not user.activo:
        logger.warning(f"⚠️ Inactive user {user.email} attempted to authenticate")
        raise HTTPException(status_code=403, detail="Account is disabled")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


def require_roles(*roles: str):
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        @router.patch("/{id}/aprobar")
        async def approve(user: User = Depends(require_roles(*MANAGER_ROLES))):
            ...
    """

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.rol not in roles:
            logger.warning(f"🚫 User {user.id} with role {user.rol} denied (needs {roles})")
            raise PermissionDeniedError("No tiene permisos para realizar esta acción")
        return user

    return role_checker

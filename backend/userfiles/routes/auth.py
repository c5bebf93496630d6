"""Auth API routes. Credentials and sessions are handled by the identity provider."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from userfiles.config import settings
from userfiles.dependencies import AuthClaims, get_identity_client, require_auth
from userfiles.schemas.auth import CurrentUserResponse, LoginRequest
from userfiles.schemas.file import MessageResponse
from userfiles.services.identity import IdentityClient, IdentityError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    claims: AuthClaims = Depends(require_auth),
    identity: IdentityClient = Depends(get_identity_client),
):
    """Return the identity provider's record for the signed-in user."""
    try:
        user = await identity.get_user(claims.token)
    except IdentityError as e:
        raise HTTPException(status_code=e.status_code or 502, detail=e.message)
    return {"user": user}


@router.get("/login", response_model=MessageResponse)
async def login_default(
    response: Response,
    identity: IdentityClient = Depends(get_identity_client),
):
    """Sign in with the configured default account and set the session cookie."""
    if not settings.AUTH_LOGIN_EMAIL or not settings.AUTH_LOGIN_PASSWORD:
        raise HTTPException(status_code=500, detail="Default login credentials are not configured")
    return await _sign_in(response, identity, settings.AUTH_LOGIN_EMAIL, settings.AUTH_LOGIN_PASSWORD)


@router.post("/login", response_model=MessageResponse)
async def login(
    body: LoginRequest,
    response: Response,
    identity: IdentityClient = Depends(get_identity_client),
):
    """Sign in with email/password and set the session cookie."""
    return await _sign_in(response, identity, body.email, body.password)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    identity: IdentityClient = Depends(get_identity_client),
):
    """Sign out upstream and clear the session cookie."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        try:
            await identity.sign_out(token)
        except IdentityError as e:
            logger.error("Error signing out: %s", e.message)
            raise HTTPException(status_code=500, detail="Error signing out")

    response.delete_cookie(settings.AUTH_COOKIE_NAME, httponly=True, secure=settings.AUTH_COOKIE_SECURE)
    return {"message": "User signed out successfully"}


async def _sign_in(response: Response, identity: IdentityClient, email: str, password: str) -> dict:
    try:
        session = await identity.sign_in(email, password)
    except IdentityError as e:
        logger.warning("Sign-in failed for %s: %s", email, e.message)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        session.access_token,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        max_age=settings.AUTH_COOKIE_MAX_AGE,
    )
    return {"message": "User signed in successfully"}

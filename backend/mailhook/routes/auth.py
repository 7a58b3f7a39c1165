"""
Authentication routes for the Microsoft identity platform.

Sign-in flow:
1. Client calls GET /auth/signin → gets the consent URL and a state cookie
2. Client redirects the user to the consent URL
3. User consents on the provider's page
4. Provider redirects to GET /auth/callback with a code and the state
5. Backend checks the state against the cookie, exchanges the code,
   subscribes to mail changes and binds a session

Security:
- Session token is an HTTP-only cookie holding only a session id
- Tokens stay in the server-side MSAL cache, never in the cookie or response
- The callback only completes a flow started by the same browser
"""
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from mailhook.config import Settings, get_settings
from mailhook.dependencies import get_auth_service
from mailhook.services.auth_service import AuthService
from mailhook.services.session_service import get_session_token
from mailhook.utils.errors import InvalidRequestError
from mailhook.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _secure_cookies(settings: Settings) -> bool:
    return settings.host.startswith("https") and "localhost" not in settings.host


@router.get("/signin")
async def signin(
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Get the provider consent URL.

    Returns:
        { redirect: "https://login.microsoftonline.com/..." }
    """
    start = await auth_service.signin()
    response.set_cookie(
        key=settings.auth_state_cookie_name,
        value=start.state,
        httponly=True,
        secure=_secure_cookies(settings),
        samesite="lax",
        max_age=settings.auth_flow_ttl_minutes * 60,
        path="/auth",
    )
    logger.info("Sign-in URL generated")
    return {"redirect": start.redirect}


@router.get("/callback")
async def callback(
    request: Request,
    code: str = None,
    error: str = None,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Handle the provider redirect after consent.

    On success:
    - Check the state against the browser's sign-in
    - Exchange code for tokens
    - Subscribe to new mail
    - Bind the account to a session cookie
    - Return the sanitized token response

    Query params:
        code: Authorization code (on success)
        state: Value issued by /auth/signin
        error: Error code from the provider (on denial)
    """
    if error:
        logger.warning(f"Authorization error: {error}")
        raise InvalidRequestError(f"Authorization failed: {error}")

    if not code:
        logger.warning("Callback missing code")
        raise InvalidRequestError("Missing authorization code.")

    result = await auth_service.callback(
        dict(request.query_params),
        request.cookies.get(settings.auth_state_cookie_name),
    )
    logger.info("Callback successful, session created")

    response = JSONResponse(result.response.model_dump(mode="json", by_alias=True))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=result.session_token,
        httponly=True,
        secure=_secure_cookies(settings),
        samesite="lax",
        max_age=settings.session_expire_hours * 3600,
        path="/",
    )
    response.delete_cookie(key=settings.auth_state_cookie_name, path="/auth")
    return response


@router.post("/signout")
async def signout(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    """
    Sign out by dropping the session.

    Returns:
        { success: true, message: "Signed out successfully" }
    """
    token = get_session_token(request, settings)
    if token:
        await auth_service.signout(token)

    response.delete_cookie(key=settings.session_cookie_name, path="/")
    logger.info("User signed out")
    return {"success": True, "message": "Signed out successfully"}

from fastapi import APIRouter, Depends, Request, Response
from pydantic import EmailStr, Field

from ..auth import get_identity
from ..identity import SESSION_COOKIE, IdentityProvider, bearer_token
from ..schemas import Payload
from .common import ok

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignUpRequest(Payload):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str


class SignInRequest(Payload):
    email: EmailStr
    password: str


def _set_session_cookie(request: Request, response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        path="/",
    )


@router.post("/sign-up/email", status_code=201)
def sign_up(
    payload: SignUpRequest,
    request: Request,
    response: Response,
    identity: IdentityProvider = Depends(get_identity),
):
    user, token = identity.sign_up(payload.name, payload.email, payload.password)
    _set_session_cookie(request, response, token)
    return ok({"token": token, "user": user})


@router.post("/sign-in/email")
def sign_in(
    payload: SignInRequest,
    request: Request,
    response: Response,
    identity: IdentityProvider = Depends(get_identity),
):
    user, token = identity.sign_in(payload.email, payload.password)
    _set_session_cookie(request, response, token)
    return ok({"token": token, "user": user})


@router.get("/get-session")
def get_session(request: Request, identity: IdentityProvider = Depends(get_identity)):
    principal = identity.get_session(request.headers)
    return ok({"user": principal.model_dump()} if principal else None)


@router.post("/sign-out")
def sign_out(request: Request, response: Response, identity: IdentityProvider = Depends(get_identity)):
    identity.sign_out(bearer_token(request.headers))
    response.delete_cookie(SESSION_COOKIE, path="/")
    return ok(message="Signed out")

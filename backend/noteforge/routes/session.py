"""
NoteForge Backend - Session Gate Routes
========================================

GET /login  signed in → 302 to "/", otherwise 200 {authenticated: false}
GET /       signed out → 302 to "/login", otherwise 200 with the user

Sign-in itself belongs to the auth provider; these routes only look at the
session the request already carries.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from noteforge.dependencies import optional_session
from noteforge.schemas.content import SessionResponse
from noteforge.services.session_gate import UserSession

router = APIRouter(tags=["Session"])


@router.get(
    "/login",
    response_model=None,
    responses={302: {"description": "Already signed in"}},
    summary="Login page gate",
)
async def login(
    session: Optional[UserSession] = Depends(optional_session),
) -> Union[RedirectResponse, SessionResponse]:
    if session is not None:
        return RedirectResponse(url="/", status_code=302)
    return SessionResponse(authenticated=False)


@router.get(
    "/",
    response_model=None,
    responses={302: {"description": "Not signed in"}},
    summary="Home page gate",
)
async def home(
    session: Optional[UserSession] = Depends(optional_session),
) -> Union[RedirectResponse, SessionResponse]:
    if session is None:
        return RedirectResponse(url="/login", status_code=302)
    return SessionResponse(authenticated=True, user_id=session.user_id, email=session.email)

# mediavault/pairing.py
"""Device pairing with short codes.

A device asks for a code (and a code token), shows the code to the user, and
polls with the code token. The user links the code from another client by
logging in with it; the next poll returns the linked session's tokens.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .auth import Auth
from .auth_api import Credentials, credentials_login, bearer_token, get_auth
from .errors import AccessDenied, AuthError, MediaVaultError
from .models import Code

log = logging.getLogger("auth")

router = APIRouter(prefix="/api", tags=["pairing"])


class CodeCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str = Field(default="", validation_alias=AliasChoices("code", "Code"))


class LinkCredentials(Credentials):
    code: str = Field(default="", validation_alias=AliasChoices("code", "Code"))


async def code_token(request: Request) -> Code:
    return await get_auth(request).check_code_token(bearer_token(request))


@router.get("/code")
async def code_get(auth: Auth = Depends(get_auth)):
    await auth.delete_expired_codes()
    c = await auth.generate_code()
    return {"AccessToken": auth.new_code_token(c.value), "Code": c.value}


@router.post("/code")
async def code_check(check: Optional[CodeCheck] = None, code: Code = Depends(code_token), auth: Auth = Depends(get_auth)):
    # the token is bound to one code
    if check is not None and check.code and check.code != code.value:
        raise AccessDenied()
    return await auth.check_code(code.value)


@router.post("/link", status_code=204)
async def link(creds: LinkCredentials, auth: Auth = Depends(get_auth)):
    session = await credentials_login(auth, creds)
    try:
        await auth.authorize_code(creds.code, session.token)
    except MediaVaultError as e:
        log.info("%s: link %s: %s", session.user, creds.code, e.code)
        raise AuthError("invalid-code")
    log.info("%s: linked code %s", session.user, creds.code)
    return Response(status_code=204)

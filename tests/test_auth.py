# tests/test_auth.py
import pyotp
import pytest
from jose import jwt

from mediavault.auth import CODE_CHARS, CODE_SIZE
from mediavault.errors import (
    AccessDenied, CodeAlreadyUsed, InvalidPasscode, InvalidToken, KeyMismatch,
    PasscodeRequired, SessionNotFound, UserExists, UserNotFound, WeakPassword,
)
from mediavault.utils import check_password, generate_passcode, password_entropy, totp_secret

from .conftest import PASSWORD, USER


@pytest.mark.asyncio
async def test_login_creates_session(auth):
    await auth.add_user(USER, PASSWORD)
    s = await auth.login(USER, PASSWORD)
    assert s.user == USER
    assert len(s.token) == 36
    tokens = auth.tokens(s)
    assert set(tokens) == {"AccessToken", "MediaToken", "RefreshToken"}
    assert tokens["RefreshToken"] == s.token
    assert (await auth.check_access_token_user(tokens["AccessToken"])).name == USER
    assert (await auth.check_media_token_user(tokens["MediaToken"])).name == USER


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(auth):
    await auth.add_user(USER, PASSWORD)
    with pytest.raises(KeyMismatch):
        await auth.login(USER, PASSWORD + "x")
    with pytest.raises(UserNotFound):
        await auth.login("bob", PASSWORD)


@pytest.mark.asyncio
async def test_access_token_is_not_a_media_token(auth):
    await auth.add_user(USER, PASSWORD)
    tokens = auth.tokens(await auth.login(USER, PASSWORD))
    with pytest.raises(InvalidToken):
        await auth.check_media_token_user(tokens["AccessToken"])


@pytest.mark.asyncio
async def test_totp_login(auth):
    await auth.add_user(USER, PASSWORD)
    uri = pyotp.TOTP(pyotp.random_base32()).provisioning_uri(name=USER, issuer_name="MediaVault")
    await auth.assign_totp(USER, uri)

    with pytest.raises(PasscodeRequired):
        await auth.login(USER, PASSWORD)
    with pytest.raises(InvalidPasscode):
        await auth.passcode_login(USER, PASSWORD, "abcdef")

    s = await auth.passcode_login(USER, PASSWORD, generate_passcode(totp_secret(uri)))
    assert s.user == USER


@pytest.mark.asyncio
async def test_pairing_code_flow(auth):
    await auth.add_user(USER, PASSWORD)
    code = await auth.generate_code()
    assert len(code.value) == CODE_SIZE
    assert all(ch in CODE_CHARS for ch in code.value)

    token = auth.new_code_token(code.value)
    assert jwt.get_unverified_claims(token)["sub"] == code.value
    assert (await auth.check_code_token(token)).value == code.value

    # nothing linked yet
    with pytest.raises(AccessDenied):
        await auth.check_code(code.value)

    s = await auth.login(USER, PASSWORD)
    await auth.authorize_code(code.value, s.token)
    tokens = await auth.check_code(code.value)
    assert tokens["RefreshToken"] == s.token

    with pytest.raises(CodeAlreadyUsed):
        await auth.authorize_code(code.value, s.token)


@pytest.mark.asyncio
async def test_file_token_audience(auth):
    token = auth.new_file_token("/music/a.flac")
    auth.check_file_token(token, "/music/a.flac")
    with pytest.raises(InvalidToken) as exc:
        auth.check_file_token(token, "/music/b.flac")
    assert exc.value.code == "invalid-token-audience"


@pytest.mark.asyncio
async def test_expired_sessions_are_deleted(auth):
    await auth.add_user(USER, PASSWORD)
    s = await auth.login(USER, PASSWORD)
    await auth.expire_all(USER)
    assert await auth.delete_expired_sessions() == 1
    with pytest.raises(SessionNotFound):
        await auth.cookie_user(s.token)


def test_weak_password_rejected():
    with pytest.raises(WeakPassword):
        check_password("password")
    check_password(PASSWORD)
    assert password_entropy("aaaaaaaa") < password_entropy("a8#Kq2!z")


@pytest.mark.asyncio
async def test_add_existing_user_rejected(auth):
    await auth.add_user(USER, PASSWORD)
    with pytest.raises(UserExists) as err:
        await auth.add_user(USER, "some-other-long-passphrase-99")
    assert (err.value.status, err.value.code) == (409, "user-exists")
    # the original credentials are untouched
    await auth.login(USER, PASSWORD)
    assert [u.name for u in await auth.users()] == [USER]


@pytest.mark.asyncio
async def test_user_admin_command(auth, capsys):
    from argparse import Namespace

    from run_server import user_admin

    def args(**kw):
        base = dict(user=USER, password="", add=False, change=False, media="", expire=False, totp=False)
        return Namespace(**{**base, **kw})

    await user_admin(args(password=PASSWORD, add=True, media="test"))
    assert (await auth.user(USER)).media == "test"
    await auth.login(USER, PASSWORD)

    other = "another-long-passphrase-for-alice-7"
    await user_admin(args(password=other, change=True))
    with pytest.raises(KeyMismatch):
        await auth.login(USER, PASSWORD)
    await auth.login(USER, other)

    await user_admin(args(totp=True))
    assert capsys.readouterr().out.startswith("otpauth://totp/")
    with pytest.raises(PasscodeRequired):
        await auth.login(USER, other)

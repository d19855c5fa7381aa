# run_server.py
import argparse
import asyncio

import uvicorn

from mediavault.config import settings


async def _run_job(name: str) -> None:
    from mediavault.database import dispose_all, init_db
    from mediavault.scheduler import run_job

    await init_db()
    try:
        await run_job(name)
    finally:
        await dispose_all()


async def user_admin(args: argparse.Namespace) -> None:
    """Add a user or change a password, assign media, expire sessions, generate TOTP."""
    from mediavault.auth import Auth
    from mediavault.database import dispose_all, init_db
    from mediavault.utils import new_totp_uri

    await init_db()
    try:
        auth = Auth()
        if args.password:
            if args.add:
                await auth.add_user(args.user, args.password)
            elif args.change:
                await auth.change_password(args.user, args.password)
        if args.media:
            await auth.assign_media(args.user, args.media)
        if args.expire:
            await auth.expire_all(args.user)
        if args.totp:
            uri = new_totp_uri(args.user)
            await auth.assign_totp(args.user, uri)
            print(uri)
    finally:
        await dispose_all()


def main() -> None:
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} server")
    parser.add_argument("--host", default=settings.HOST)
    parser.add_argument("--port", type=int, default=settings.PORT)
    parser.add_argument("--job", metavar="NAME", help="run one scheduler job now and exit")

    admin = parser.add_argument_group("user admin")
    admin.add_argument("--user", metavar="NAME", help="user to administer, then exit")
    admin.add_argument("--password", "--pass", dest="password", default="")
    admin.add_argument("--add", action="store_true", help="add the user with --password")
    admin.add_argument("--change", action="store_true", help="change the user's password")
    admin.add_argument("--media", default="", help="comma separated media collections")
    admin.add_argument("--expire", action="store_true", help="expire all of the user's sessions")
    admin.add_argument("--totp", action="store_true", help="generate and print a TOTP URI")
    args = parser.parse_args()

    if args.job or args.user:
        # importing main configures logging
        import mediavault.main  # noqa: F401
        asyncio.run(_run_job(args.job) if args.job else user_admin(args))
        return

    print(f"Starting {settings.APP_NAME} on {args.host}:{args.port}")
    # no reload, no workers; the scheduler lives in this process
    uvicorn.run("mediavault.main:app", host=args.host, port=args.port, log_level="info",
                proxy_headers=True, forwarded_allow_ips="*", timeout_keep_alive=20)


if __name__ == "__main__":
    main()

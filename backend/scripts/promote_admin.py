import argparse
import asyncio
import os
import sys

# Add parent dir to path if needed to find beacon
if os.path.exists("backend"):
    sys.path.append(os.path.join(os.getcwd(), "backend"))
else:
    sys.path.append(os.getcwd())

from beacon.infra.postgres import close_pool, init_pool
from beacon.settings import settings


async def promote(email: str, revoke: bool) -> int:
    print(f"Connecting to: {settings.postgres_url}")
    pool = await init_pool()
    try:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "UPDATE users SET is_admin = $2, version = version + 1 WHERE lower(email) = lower($1) RETURNING id",
                email,
                not revoke,
            )
    finally:
        await close_pool()
    if row is None:
        print(f"No user with email {email}")
        return 1
    state = "revoked" if revoke else "granted"
    print(f"Admin {state} for user {row['id']} ({email})")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Grant or revoke the admin flag for a user")
    parser.add_argument("email")
    parser.add_argument("--revoke", action="store_true")
    args = parser.parse_args()

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    sys.exit(asyncio.run(promote(args.email, args.revoke)))

#!/usr/bin/env python3
"""
Promote an existing user to the ADMIN role. Run on the server.

Admin is never self-assignable at signup; operators grant it here.

Usage:
    python demo/promote_admin.py admin@fixdemo.co.uk
"""
import argparse
import asyncio

from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from marketplace_api.config import settings
from marketplace_api.models.user import User, UserRole
from marketplace_api.validation import normalize_email


async def promote(email: str) -> int:
    engine = create_async_engine(settings.DATABASE_URL)
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(User)
            .where(User.email == normalize_email(email))
            .values(role=UserRole.ADMIN)
        )
        await s.commit()
    await engine.dispose()
    return r.rowcount


def main() -> None:
    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument("email", help="Email of the user to promote")
    args = parser.parse_args()

    rows = asyncio.run(promote(args.email))
    print(f"Rows updated: {rows}")


if __name__ == "__main__":
    main()

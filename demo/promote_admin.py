#!/usr/bin/env python3
"""Grant or revoke the ADMIN role on an existing account. Run on the server.

Signup only ever creates USER accounts; this is the out-of-band way to
provision card administrators. Uses the same settings (DATABASE_URL, .env)
as the API.

Usage:
    python demo/promote_admin.py admin@bankdemo.com
    python demo/promote_admin.py admin@bankdemo.com --revoke
"""
import asyncio
import sys

from sqlalchemy import update

from app import models  # noqa: F401
from app.database import AsyncSessionLocal, engine
from app.models.user import User, UserRole


async def set_role(email: str, role: UserRole) -> int:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(User).where(User.email == email).values(role=role)
        )
        await session.commit()
    await engine.dispose()
    return result.rowcount


if __name__ == "__main__":
    email = sys.argv[1] if len(sys.argv) > 1 else "admin@bankdemo.com"
    role = UserRole.USER if "--revoke" in sys.argv[2:] else UserRole.ADMIN
    updated = asyncio.run(set_role(email, role))
    if not updated:
        sys.exit(f"No account registered with {email}")
    print(f"{email} is now {role.value}")

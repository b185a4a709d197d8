"""
Operator script to grant the admin role.

Admins are never created through the API. Run this against the database
for an account that has signed in at least once, or pass --create to add
the user record directly.

    python parcelflow/promote_admin.py ops@example.com
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.db.session import AsyncSessionLocal, engine, Base
from parcelflow.app.models.user import User
from parcelflow.app.models.enums import UserRole
from parcelflow.app.core.timeutils import utcnow


async def promote_admin(db: AsyncSession, email: str, create: bool = False) -> bool:
    """
    Give ``email`` the admin role.

    Returns False when the user does not exist and ``create`` is off.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        if not create:
            return False
        user = User(email=email, role=UserRole.ADMIN, created_at=utcnow())
        db.add(user)
    else:
        user.role = UserRole.ADMIN

    await db.commit()
    return True


async def main(email: str, create: bool) -> int:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        promoted = await promote_admin(db, email, create)

    await engine.dispose()

    if not promoted:
        print(f"No user with email {email}; sign in first or pass --create")
        return 1
    print(f"{email} is now an admin")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Grant the admin role to a user")
    parser.add_argument("email")
    parser.add_argument("--create", action="store_true", help="create the user if missing")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.email, args.create)))

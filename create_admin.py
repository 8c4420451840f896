"""
Script to grant admin rights to a registered user

Usage:
    python create_admin.py <email>

Example:
    python create_admin.py admin@example.com
"""
import asyncio
import sys
from storefront.config import settings
from storefront.database import async_session_maker, engine
from storefront.core.security import create_user_token
from storefront.services.user_service import user_service


async def make_admin(email: str):
    """Make user admin by email"""
    print("Connecting to database...")
    print(f"   Database: {settings.DATABASE_URL.split('@')[-1] if '@' in settings.DATABASE_URL else 'local'}")

    async with async_session_maker() as session:
        user = await user_service.set_admin(session, email)

        if not user:
            print(f"User with email {email} not found!")
            print("Please register first via POST /api/users")
            await engine.dispose()
            return

        print(f"User {email} is now ADMIN!")
        print(f"   ID: {user.id}")
        print(f"   Username: {user.username}")

        # Token for trying the admin routes from the docs page
        token = create_user_token(user)
        print("\nAccess token (send as x-auth-token header):")
        print(f"   {token}")

    await engine.dispose()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python create_admin.py <email>")
        print("Example: python create_admin.py admin@example.com")
        sys.exit(1)

    email = sys.argv[1]
    asyncio.run(make_admin(email))

"""Create a dashboard user (admin, doctor or secretary).

Usage: python create_user.py <username> <full name> <role> <password>
"""

import asyncio
import sys

from clinicqueue.database import Database
from clinicqueue.models.user import UserRole
from clinicqueue.services.auth_service import AuthService


async def create_user(username: str, full_name: str, role: str, password: str):
    await Database.connect()
    try:
        user = await AuthService.create_user(username, full_name, password, UserRole(role))
        print(f"Created {user.role.value} '{user.username}' ({user.id})")
    except ValueError as e:
        print(f"Error: {e}")
    finally:
        await Database.disconnect()


if __name__ == "__main__":
    if len(sys.argv) != 5:
        print(__doc__)
        sys.exit(1)
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(create_user(*sys.argv[1:]))

"""Create the administrator account, or promote and reset it if the email exists.

Usage: python -m forumdb.scripts.create_admin <email> <username> <password>
"""

import sys

from forumdb.client import ForumClient
from forumdb.core.security import get_password_hash


def create_admin(client: ForumClient, *, email: str, username: str, password: str) -> dict:
    hashed = get_password_hash(password)
    return client.user.upsert(
        where={"email": email},
        create={"email": email, "username": username, "password": hashed, "is_admin": True},
        update={"is_admin": True, "password": hashed},
        omit={"password": True},
    )


def main():
    if len(sys.argv) != 4:
        print("Usage: python -m forumdb.scripts.create_admin <email> <username> <password>")
        sys.exit(1)
    email, username, password = sys.argv[1:]
    with ForumClient() as client:
        admin = create_admin(client, email=email, username=username, password=password)
    print(f"✅ Administrator ready: {admin['username']} ({admin['email']})")


if __name__ == "__main__":
    main()

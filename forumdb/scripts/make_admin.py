"""Promote an existing user to administrator.

Usage: python -m forumdb.scripts.make_admin <email>
"""

import sys

from forumdb.client import ForumClient
from forumdb.core.exceptions import RecordNotFoundError


def make_admin(client: ForumClient, email: str) -> dict:
    return client.user.update(where={"email": email}, data={"is_admin": True}, omit={"password": True})


def main():
    if len(sys.argv) != 2:
        print("Please provide an email address: python -m forumdb.scripts.make_admin your@email.com")
        sys.exit(1)
    email = sys.argv[1]
    with ForumClient() as client:
        try:
            user = make_admin(client, email)
        except RecordNotFoundError:
            print(f"❌ User with email {email} not found")
            sys.exit(1)
    print(f"✅ User {user['username']} ({user['email']}) is now an admin")


if __name__ == "__main__":
    main()

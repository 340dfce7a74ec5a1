"""Print every user with role, credit score and ban state.

Usage: python -m forumdb.scripts.list_users
"""

from forumdb.client import ForumClient


def list_users(client: ForumClient) -> list:
    return client.user.find_many(
        order_by={"created_at": "asc"},
        select={
            "id": True,
            "username": True,
            "email": True,
            "is_admin": True,
            "credit_score": True,
            "ban_until": True,
            "_count": {"select": {"posts": True, "comments": True}},
        },
    )


def main():
    with ForumClient() as client:
        users = list_users(client)
    print(f"Found {len(users)} user(s)")
    for user in users:
        role = "admin" if user["is_admin"] else "user"
        banned = f" banned until {user['ban_until']}" if user["ban_until"] else ""
        counts = user["_count"]
        print(
            f"- {user['username']} <{user['email']}> [{role}] credit={user['credit_score']}{banned} "
            f"posts={counts['posts']} comments={counts['comments']}"
        )


if __name__ == "__main__":
    main()

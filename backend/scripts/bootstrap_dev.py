"""
Create a user and an access token for local development.

Usage:
    python -m scripts.bootstrap_dev [--email dev@capycode.local] [--admin] [--plan free]

This will:
  1. Create the user (or reuse it if the email already exists)
  2. Upsert its subscription plan
  3. Generate an access token
  4. Print the raw token ONCE (only its hash is stored)

The raw token cannot be recovered later.
"""

import argparse
import asyncio
import sys

# Ensure backend/ is on the path
sys.path.insert(0, ".")

from sqlalchemy import select  # noqa: E402

from capycode.auth.hashing import display_prefix, generate_access_token  # noqa: E402
from capycode.core.database import async_session_factory, engine  # noqa: E402
from capycode.models.access_token import AccessToken  # noqa: E402
from capycode.models.subscription import Subscription  # noqa: E402
from capycode.models.user import User  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a dev user and access token.")
    parser.add_argument("--email", default="dev@capycode.local")
    parser.add_argument("--admin", action="store_true", help="grant the admin role")
    parser.add_argument("--plan", choices=("free", "pro", "team"), default="free")
    return parser.parse_args()


async def main(args: argparse.Namespace) -> None:
    async with async_session_factory() as session:
        # ── User ────────────────────────────────────────────
        result = await session.execute(select(User).where(User.email == args.email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=args.email, role="admin" if args.admin else "user")
            session.add(user)
            await session.flush()  # get user.id
        elif args.admin:
            user.role = "admin"

        # ── Plan ────────────────────────────────────────────
        subscription = await session.get(Subscription, user.id)
        if subscription is None:
            session.add(Subscription(user_id=user.id, plan=args.plan))
        else:
            subscription.plan = args.plan
            subscription.status = "active"

        # ── Access token ────────────────────────────────────
        raw_token, token_hash = generate_access_token()
        session.add(
            AccessToken(
                user_id=user.id,
                token_hash=token_hash,
                prefix=display_prefix(raw_token),
            )
        )
        await session.commit()

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  User:    {user.email} ({user.role}, plan {args.plan})")
    print(f"  User ID: {user.id}")
    print()
    print(f"  Token:   {raw_token}")
    print()
    print("  ⚠  Copy this token now. It will not be shown again.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main(parse_args()))

#!/usr/bin/env python3
"""
Token Management Utility

This script mints and inspects bearer tokens for the Dusty Shelf API:
- Issue a token for a user id
- Decode and verify an existing token
"""

import sys
import time
from typing import Optional

from dusty_shelf.auth import AuthGuard
from dusty_shelf.config import Settings
from dusty_shelf.errors import UnauthorizedError
from dusty_shelf.models import UserClaims

DEFAULT_AUDIENCE = "dusty-shelf"
DEFAULT_EXPIRES_MINUTES = 60


def issue_token(
    guard: AuthGuard,
    user_id: int,
    aud: str = DEFAULT_AUDIENCE,
    sub: Optional[str] = None,
    expires_minutes: int = DEFAULT_EXPIRES_MINUTES,
    now: Optional[float] = None,
) -> str:
    """
    Issue a signed token.

    Args:
        guard: Guard holding the signing secret
        user_id: User identifier stored in the ``id`` claim
        aud: Audience claim
        sub: Subject claim, defaults to the user id
        expires_minutes: Lifetime of the token
        now: Current unix time, for reproducible tokens

    Returns:
        Encoded token
    """
    issued_at = time.time() if now is None else now
    claims = UserClaims(
        id=user_id,
        aud=aud,
        sub=sub if sub is not None else str(user_id),
        exp=int(issued_at) + expires_minutes * 60,
    )
    return guard.issue(claims)


def print_usage():
    print("Usage: python manage_tokens.py [issue|decode] <args>")
    print()
    print("Commands:")
    print("  issue <user_id> [audience] [subject] [expires_minutes]  - Issue a bearer token")
    print("  decode <token>                                          - Verify and show a token")
    print()
    print("Examples:")
    print("  python manage_tokens.py issue 1")
    print("  python manage_tokens.py issue 1 dusty-shelf reader 120")
    print("  python manage_tokens.py decode eyJhbGciOiJIUzI1NiIs...")


def main():
    """Main function."""
    if len(sys.argv) < 3:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()
    guard = AuthGuard(Settings().jwt_secret)

    if command == "issue":
        try:
            user_id = int(sys.argv[2])
            expires_minutes = int(sys.argv[5]) if len(sys.argv) > 5 else DEFAULT_EXPIRES_MINUTES
        except ValueError:
            print("❌ Error: user_id and expires_minutes must be integers")
            sys.exit(1)
        aud = sys.argv[3] if len(sys.argv) > 3 else DEFAULT_AUDIENCE
        sub = sys.argv[4] if len(sys.argv) > 4 else None

        token = issue_token(guard, user_id, aud, sub, expires_minutes)
        print(f"✅ Token for user {user_id} (valid {expires_minutes} minutes):")
        print(f"Bearer {token}")
    elif command == "decode":
        try:
            claims = guard.decode(sys.argv[2])
        except UnauthorizedError:
            print("❌ Token is invalid or expired")
            sys.exit(1)
        print("✅ Token is valid:")
        print(f"   ID: {claims.id}")
        print(f"   Audience: {claims.aud}")
        print(f"   Subject: {claims.sub}")
        print(f"   Expires: {claims.exp}")
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: issue, decode")
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Demo seed script: registers sample users through the running API.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords. It is intended ONLY for
local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Delete the SQLite database instead (restart the server afterwards):
    python demo/seed.py --reset

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬──────────┐
    │ Email                        │ Password          │ Role     │
    ├──────────────────────────────┼───────────────────┼──────────┤
    │ admin@fixdemo.co.uk          │ AdminDemo123!     │ admin    │
    │ alice.chen@example.co.uk     │ AliceDemo123!     │ customer │
    │ bob.martinez@example.co.uk   │ BobDemo123!       │ customer │
    │ carol.nguyen@example.co.uk   │ CarolDemo123!     │ engineer │
    └──────────────────────────────┴───────────────────┴──────────┘
"""

import argparse
import asyncio
import os

import httpx

from promote_admin import promote


ADMIN = {
    "username": "admin",
    "email": "admin@fixdemo.co.uk",
    "password": "AdminDemo123!",
    "phoneNumber": "020 7946 0000",
    "location": {"address": "1 Operator Way", "city": "London", "zipCode": "EC1A 1BB"},
}

USERS = [
    {
        "username": "alice",
        "email": "alice.chen@example.co.uk",
        "password": "AliceDemo123!",
        "phoneNumber": "+44 7700 900123",
        "location": {"address": "12 Baker Street", "city": "London", "zipCode": "NW1 6XE"},
    },
    {
        "username": "bob",
        "email": "bob.martinez@example.co.uk",
        "password": "BobDemo123!",
        "phoneNumber": "07700 900456",
        "location": {"address": "4 Deansgate", "city": "Manchester", "zipCode": "M3 2BW"},
    },
    {
        "username": "carol",
        "email": "carol.nguyen@example.co.uk",
        "password": "CarolDemo123!",
        "phoneNumber": "07700 900789",
        "location": {"address": "88 Broad Street", "city": "Birmingham", "zipCode": "B1 2HF"},
        "role": "engineer",
    },
]


async def signup(client: httpx.AsyncClient, user: dict) -> None:
    resp = await client.post("/signup/user", json={**user, "passwordConfirm": user["password"]})
    if resp.status_code == 400 and resp.json().get("error_type") == "duplicate_email":
        print(f"  {user['email']} already exists")
        return
    resp.raise_for_status()
    print(f"  Created {user['email']}")


async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(base_url=base_url) as client:
        for user in [ADMIN, *USERS]:
            await signup(client, user)
    await promote(ADMIN["email"])
    print(f"  Promoted {ADMIN['email']} to admin")


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "marketplace.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="Demo seed script — NOT FOR PRODUCTION")
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    asyncio.run(seed(args.base_url))


if __name__ == "__main__":
    main()

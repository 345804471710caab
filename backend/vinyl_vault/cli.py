"""Create the first admin account.

Usage:
    python -m vinyl_vault.cli [--settings vinylvault.settings.yaml]
                              [--username NAME] [--email ADDRESS]

The password is always read interactively and confirmed.
"""
import argparse
import getpass
import sys
from pathlib import Path
from typing import List, Optional

from vinyl_vault.config import load_config
from vinyl_vault.db import Database
from vinyl_vault.errors import VinylVaultError
from vinyl_vault.users import UserRepository, UserService


def _ask(prompt: str, value: Optional[str]) -> str:
    if value:
        return value.strip()
    return input(prompt).strip()


def main(argv: Optional[List[str]] = None) -> int:
    """Register a user and promote it to admin. Returns the exit code."""
    parser = argparse.ArgumentParser(
        description="Create a Vinyl Vault admin user",
        prog="python -m vinyl_vault.cli",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Settings file (default: VINYL_VAULT_SETTINGS or ./vinylvault.settings.yaml)",
    )
    parser.add_argument("--username", default=None, help="Admin username (prompted if omitted)")
    parser.add_argument("--email", default=None, help="Admin email (prompted if omitted)")
    args = parser.parse_args(argv)

    print("******* Vinyl Vault Admin Setup *******")
    config = load_config(args.settings)

    try:
        username = _ask("Enter admin username: ", args.username)
        email = _ask("Enter admin email: ", args.email)
        password = getpass.getpass("Enter admin password: ")
        confirm = getpass.getpass("Confirm password: ")
    except (EOFError, KeyboardInterrupt):
        print("\nAborted", file=sys.stderr)
        return 1

    if password != confirm:
        print("Passwords do not match", file=sys.stderr)
        return 1

    db_path = config.database.path
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)
    try:
        users = UserService(UserRepository(db), config.auth.password_min_length)
        user = users.register(username, email, password)
        users.promote_to_admin(user.id)
    except VinylVaultError as exc:
        print(f"Failed to create admin user: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"\nAdmin user '{username}' created successfully!")
    print("You can now start the server and generate registration keys.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

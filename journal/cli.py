"""CLI tool for account and API key operations.

Usage:
    python -m journal.cli create-user
    python -m journal.cli create-api-key <email> <name>
    python -m journal.cli revoke-api-key <key>
"""

import sys
import getpass

from sqlmodel import Session, select

from journal.database import engine, create_db_and_tables
from journal.models.api_key import ApiKey
from journal.models.user import User
from journal.services.api_keys import create_api_key, revoke_api_key
from journal.services.auth import (
    generate_totp_secret,
    get_totp_uri,
    hash_password,
    normalize_email,
)
from journal.utils.logging import setup_logging


def create_user():
    """Create a user, optionally with TOTP setup."""
    email = normalize_email(input("Email: "))
    if not email:
        print("Email cannot be empty.")
        sys.exit(1)

    with Session(engine) as session:
        existing = session.exec(select(User).where(User.email == email)).first()
        if existing:
            print(f"User '{email}' already exists.")
            sys.exit(1)

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("Passwords do not match.")
        sys.exit(1)

    enable_totp = input("Enable TOTP? [y/N]: ").strip().lower() == "y"
    totp_secret = generate_totp_secret() if enable_totp else None

    user = User(
        email=email,
        hashed_password=hash_password(password),
        totp_secret=totp_secret,
    )

    with Session(engine) as session:
        session.add(user)
        session.commit()

    print(f"\nUser '{email}' created successfully.")
    if totp_secret:
        _print_totp(totp_secret, email)


def _print_totp(totp_secret: str, email: str):
    totp_uri = get_totp_uri(totp_secret, email)
    print(f"\nTOTP Secret: {totp_secret}")
    print(f"TOTP URI: {totp_uri}")
    print("\nScan the QR code below with your authenticator app:")

    try:
        import qrcode
        qr = qrcode.QRCode(box_size=1, border=1)
        qr.add_data(totp_uri)
        qr.make(fit=True)
        qr.print_ascii(invert=True)
    except ImportError:
        print("(Install qrcode to display QR code in terminal)")


def create_key(email: str, name: str):
    with Session(engine) as session:
        user = session.exec(select(User).where(User.email == normalize_email(email))).first()
        if not user:
            print(f"No user '{email}'.")
            sys.exit(1)
        api_key = create_api_key(session, user.id, name)
        print(f"API key '{name}' created for {user.email}:")
        print(api_key.key)


def revoke_key(key: str):
    with Session(engine) as session:
        api_key = session.exec(select(ApiKey).where(ApiKey.key == key.strip())).first()
        if not api_key:
            print("API key not found.")
            sys.exit(1)
        revoke_api_key(session, api_key)
        print(f"API key '{api_key.name}' revoked at {api_key.revoked_at}.")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m journal.cli <command>")
        print("Commands: create-user, create-api-key <email> <name>, revoke-api-key <key>")
        sys.exit(1)

    setup_logging()
    create_db_and_tables()

    command = sys.argv[1]
    if command == "create-user":
        create_user()
    elif command == "create-api-key" and len(sys.argv) == 4:
        create_key(sys.argv[2], sys.argv[3])
    elif command == "revoke-api-key" and len(sys.argv) == 3:
        revoke_key(sys.argv[2])
    else:
        print(f"Unknown command or wrong arguments: {' '.join(sys.argv[1:])}")
        sys.exit(1)


if __name__ == "__main__":
    main()

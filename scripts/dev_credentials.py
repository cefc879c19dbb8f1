"""
Development credentials — RSA keypair for RS256 JWTs plus access tokens
for the seeded users.

Usage:
    python scripts/dev_credentials.py

Writes keys/private.pem and keys/public.pem when they do not exist yet, then
prints one bearer token per user in the database. Run after seed_data.py.
Tokens are normally issued by the upstream identity service; these are for
local testing only.
"""

import asyncio
import os
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlalchemy import select


def ensure_keys(output_dir: str = "keys") -> None:
    """Generate an RSA-2048 keypair unless one is already present."""
    keys_dir = Path(output_dir)
    private_path = keys_dir / "private.pem"
    public_path = keys_dir / "public.pem"
    if private_path.exists() and public_path.exists():
        print(f"Using existing keypair in {keys_dir.resolve()}")
        return

    keys_dir.mkdir(parents=True, exist_ok=True)
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    print(f"RSA keypair written to {keys_dir.resolve()}")


async def print_tokens() -> None:
    # Imported after the keys exist so the security module loads them (RS256)
    from otcdesk.core.security import create_access_token
    from otcdesk.database import async_session, engine
    from otcdesk.models.user import User

    async with async_session() as session:
        users = (await session.execute(select(User).order_by(User.email))).scalars().all()

    if not users:
        print("No users found. Run scripts/seed_data.py first.")
    for user in users:
        token = create_access_token(str(user.id), user.email, user.role.value)
        flag = " (privileged)" if user.is_privileged else ""
        print(f"\n{user.email} [{user.role.value}]{flag}\n  Bearer {token}")

    await engine.dispose()


if __name__ == "__main__":
    # Run from project root
    os.chdir(Path(__file__).resolve().parent.parent)
    ensure_keys()
    asyncio.run(print_tokens())

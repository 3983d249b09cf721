from __future__ import annotations

import argparse
import asyncio
import sys

from petichat.persistence.db import SessionLocal
from petichat.persistence.repos import tenants as tenants_repo
from petichat.services.audit import record_event
from petichat.services.auth.api_keys import generate_api_key


def _build_parser() -> argparse.ArgumentParser:
    # Keys are issued to existing users only; registration creates the first one.
    parser = argparse.ArgumentParser(description="Issue an additional API key for a registered user")
    parser.add_argument("--email", required=True, help="E-mail of the registered user")
    parser.add_argument("--name", required=True, help="Key label for auditing")
    return parser


async def _create_key(args: argparse.Namespace) -> int:
    key_id, raw_key, key_prefix, key_hash = generate_api_key()
    async with SessionLocal() as session:
        user = await tenants_repo.get_user_by_email(session, args.email.strip().lower())
        if user is None or not user.is_active:
            print(f"create_api_key failed: no active user with e-mail {args.email}", file=sys.stderr)
            return 1
        await tenants_repo.create_api_key(
            session,
            key_id=key_id,
            user_id=user.id,
            tenant_id=user.tenant_id,
            key_prefix=key_prefix,
            key_hash=key_hash,
            name=args.name,
        )
        # Record API key creation for security investigations.
        await record_event(
            session=session,
            tenant_id=user.tenant_id,
            actor_type="system",
            actor_id="create_api_key",
            event_type="auth.api_key.created",
            outcome="success",
            resource_type="api_key",
            resource_id=key_id,
            metadata={"user_id": user.id, "key_prefix": key_prefix, "key_name": args.name},
            best_effort=False,
        )
        await session.commit()

    print("API key created:")
    print(f"  key_id: {key_id}")
    print(f"  key_prefix: {key_prefix}")
    print("  api_key: ")
    print(f"    {raw_key}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    return asyncio.run(_create_key(args))


if __name__ == "__main__":
    raise SystemExit(main())

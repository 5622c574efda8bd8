"""First-admin bootstrap for Moducate.

Creates the first admin identity, its user document and its claims against the
configured backends (DOCUMENTS_BACKEND / IDENTITY_BACKEND). Refuses to run
once any admin document exists.

Usage example:

    python -m tools.create_admin \
        --email admin@example.org \
        --display-name "Moderation Admin"

The password is read from --password or MODUCATE_ADMIN_PASSWORD; email and
display name may come from MODUCATE_ADMIN_EMAIL / MODUCATE_ADMIN_NAME.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

from moderation.container import ModerationContainer, container_from_env
from moderation.errors import ModerationError


logger = logging.getLogger("moducate.tools.create_admin")


def _mask_email(email: str) -> str:
    """Mask email for logs to reduce PII exposure in admin tool logs."""
    local, _, domain = (email or "").partition("@")
    return f"{local[:2]}***@{domain}"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the first Moducate admin user")
    parser.add_argument("--email", default=os.getenv("MODUCATE_ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("MODUCATE_ADMIN_PASSWORD"))
    parser.add_argument("--display-name", default=os.getenv("MODUCATE_ADMIN_NAME"))
    return parser.parse_args(argv)


def run(args: argparse.Namespace, container: ModerationContainer) -> int:
    """Run the bootstrap; returns a process exit code."""
    if not args.email or not args.password or not args.display_name:
        logger.error("Email, password and display name are required")
        return 2
    logger.info("Checking if any admin users already exist…")
    try:
        uid = container.users.create_first_admin(
            email=args.email,
            password=args.password,
            display_name=args.display_name,
        )
    except ModerationError as exc:
        logger.error("Admin bootstrap refused (%s): %s", exc.code, exc.detail)
        return 1
    logger.info("Admin user created %s -> %s", _mask_email(args.email), uid)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    args = _parse_args(argv)
    raise SystemExit(run(args, container_from_env()))


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()

"""Operator commands for stored Discord credentials.

Example usages::

    # Show expiry metadata for a stored credential (secrets are never printed).
    python -m scripts.credentials show --user-id 80351110224678912

    # Mint a new access token from the stored refresh token.
    python -m scripts.credentials refresh --user-id 80351110224678912

    # Join a user to a guild again with their stored credential.
    python -m scripts.credentials provision --user-id 80351110224678912 \
        --guild-id 41771983423143937

    # Grant a role to everyone provisioned into a guild from now on.
    python -m scripts.credentials set-role --guild-id 41771983423143937 --role-id 4177198
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from app.core.config import ConfigurationError, get_settings
from app.core.logging import configure_logging
from app.dependencies import get_credential_lifecycle_service, get_target_resolver
from app.schemas import AuthorizationResponse, CredentialView, RefreshResponse

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_NOT_FOUND = 4


def _show(user_id: str | None) -> int:
    lifecycle = get_credential_lifecycle_service()
    key = lifecycle.credential_key(user_id)
    credential = lifecycle.get_credential(key)
    if credential is None:
        print(f"No credential stored for {key}.", file=sys.stderr)
        return EXIT_NOT_FOUND
    view = CredentialView.from_credential(key, credential)
    print(json.dumps(view.model_dump(mode="json"), indent=2))
    return EXIT_OK


def _refresh(user_id: str | None) -> int:
    lifecycle = get_credential_lifecycle_service()
    result = asyncio.run(lifecycle.refresh_credential(user_id))
    print(json.dumps(RefreshResponse.from_result(result).model_dump(mode="json"), indent=2))
    if result.ok:
        return EXIT_OK
    return EXIT_NOT_FOUND if result.status == "not_found" else EXIT_FAILURE


def _provision(user_id: str | None, guild_id: str | None) -> int:
    lifecycle = get_credential_lifecycle_service()
    result = asyncio.run(lifecycle.provision_stored(user_id, guild_id=guild_id))
    body = AuthorizationResponse.from_result(result)
    print(json.dumps(body.model_dump(mode="json"), indent=2))
    if result.ok:
        return EXIT_OK
    return EXIT_NOT_FOUND if result.status == "not_found" else EXIT_FAILURE


def _set_role(guild_id: str, role_id: str | None) -> int:
    target = get_target_resolver().save(guild_id, role_id)
    print(f"Guild {target.guild_id} now grants role {target.role_id or '(none)'}.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect, refresh and provision stored credentials."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("show", "Print expiry metadata for a stored credential."),
        ("refresh", "Refresh a stored credential using its refresh token."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--user-id",
            default=None,
            help="Discord user id (omit with single-key addressing).",
        )

    provision_parser = subparsers.add_parser(
        "provision", help="Join a guild again using a stored credential."
    )
    provision_parser.add_argument("--user-id", default=None)
    provision_parser.add_argument(
        "--guild-id", default=None, help="Defaults to DEFAULT_GUILD_ID."
    )

    role_parser = subparsers.add_parser(
        "set-role", help="Store the role granted when provisioning into a guild."
    )
    role_parser.add_argument("--guild-id", required=True)
    role_parser.add_argument(
        "--role-id", default=None, help="Omit to only join the guild without a role."
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)

    try:
        if args.command == "show":
            return _show(args.user_id)
        if args.command == "refresh":
            return _refresh(args.user_id)
        if args.command == "provision":
            return _provision(args.user_id, args.guild_id)
        return _set_role(args.guild_id, args.role_id)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

"""Pre-flight readiness report for a deployment's ``.env`` file.

Loads ``AppSettings`` from the given file and reports, flow by flow, whether
the service can run it:

* ``authorization``: OAuth client id, secret and redirect URI.
* ``provisioning``: bot token (a missing default guild is only a warning,
  since callers may name the guild per request).
* ``storage``: backend specific requirements such as the DynamoDB table.

``record`` and ``verify`` additionally pin a SHA256 checksum of the file so
later edits are noticed before a restart picks them up.

Example usages::

    python -m scripts.check_env check --env-file /opt/onboarding/.env

    python -m scripts.check_env record --env-file /opt/onboarding/.env \
        --hash-file /opt/onboarding/.env.sha256

    # From cron/systemd, to alert on drift.
    python -m scripts.check_env verify --env-file /opt/onboarding/.env \
        --hash-file /opt/onboarding/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Iterator, NamedTuple

from pydantic import ValidationError

from app.core.config import AppSettings, ConfigurationError, CredentialBackend, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class Finding(NamedTuple):
    flow: str
    ok: bool
    message: str
    blocking: bool = True


def _readiness(settings: AppSettings) -> Iterator[Finding]:
    try:
        settings.discord.require_oauth_client()
        yield Finding("authorization", True, "OAuth client configured")
    except ConfigurationError as exc:
        yield Finding("authorization", False, str(exc))

    try:
        settings.discord.require_bot_token()
        yield Finding("provisioning", True, "bot token configured")
    except ConfigurationError as exc:
        yield Finding("provisioning", False, str(exc))

    if not settings.provisioning.default_guild_id:
        yield Finding(
            "provisioning",
            False,
            "DEFAULT_GUILD_ID unset; every request must name its guild",
            blocking=False,
        )

    storage = settings.storage
    if storage.backend is CredentialBackend.DYNAMODB and not storage.dynamodb_table_name:
        yield Finding("storage", False, "DYNAMODB_TABLE_NAME is required for the dynamodb backend")
    else:
        yield Finding(
            "storage",
            True,
            f"{storage.backend.value} backend, {storage.addressing.value} addressing",
        )


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    _load_env_file(str(env_file))
    return AppSettings(_env_file=env_file)  # type: ignore[call-arg]


def _report(settings: AppSettings) -> int:
    blocked = False
    for finding in _readiness(settings):
        if finding.ok:
            label = "ok"
        else:
            label = "FAIL" if finding.blocking else "warn"
        stream = sys.stdout if finding.ok else sys.stderr
        print(f"[{label:>4}] {finding.flow}: {finding.message}", file=stream)
        blocked = blocked or (finding.blocking and not finding.ok)
    return EXIT_VALIDATION_ERROR if blocked else EXIT_OK


def _checksum(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _checksum(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the file against the baseline written by ``record``."""
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} is missing; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _checksum(env_file)
    if expected != actual:
        print(
            f"Environment checksum mismatch for {env_file}!\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print("Environment checksum OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report flow readiness for a .env file and detect drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, hash_help in (
        ("check", "Report readiness without touching checksum files.", None),
        ("record", "Report readiness and store the checksum baseline.", "Baseline to write."),
        ("verify", "Report readiness and compare against the baseline.", "Baseline to read."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument("--env-file", default=".env", type=Path)
        if hash_help:
            subparser.add_argument("--hash-file", required=True, type=Path, help=hash_help)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    exit_code = _report(settings)
    if exit_code != EXIT_OK or args.command == "check":
        return exit_code
    if args.command == "record":
        return _record_checksum(env_file, args.hash_file)
    return _verify_checksum(env_file, args.hash_file)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

"""Pre-deploy check for the account-linking service's ``.env`` file.

The service boots without credentials and only fails the request that needs a
missing value, so operators run this before a restart:

* ``check`` loads ``AppSettings`` from the file and reports missing or
  malformed marketplace and session settings.
* ``record`` does the same and stores a SHA256 baseline of the file.
* ``verify`` does the same and compares the file against that baseline.

    python -m scripts.check_env check --env-file /srv/linking/.env
    python -m scripts.check_env record --env-file /srv/linking/.env --hash-file /srv/linking/.env.sha256
    python -m scripts.check_env verify --env-file /srv/linking/.env --hash-file /srv/linking/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class MissingSettingsError(Exception):
    """Raised when required environment keys are absent."""

    def __init__(self, keys: list[str]) -> None:
        self.keys = keys
        super().__init__(", ".join(keys))


def _digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def load_linking_settings(env_file: Path) -> AppSettings:
    """Load settings from ``env_file`` and fail on missing linking credentials."""
    if not env_file.is_file():
        raise FileNotFoundError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    missing = settings.missing_required()
    if missing:
        raise MissingSettingsError(missing)
    return settings


def _warn_on_fallbacks(settings: AppSettings) -> None:
    if not settings.security.token_encryption_secret:
        print(
            "TOKEN_ENCRYPTION_SECRET is unset; stored tokens will be encrypted "
            "with ML_CLIENT_SECRET and become unreadable if it is rotated.",
            file=sys.stderr,
        )


def record_baseline(env_file: Path, hash_file: Path) -> int:
    digest = _digest(env_file)
    hash_file.write_text(f"{digest}\n", encoding="utf-8")
    print(f"Baseline for {env_file} written to {hash_file}")
    return EXIT_OK


def verify_baseline(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _digest(env_file)
    if expected != actual:
        print(
            f"{env_file} changed since the baseline was recorded "
            f"(expected {expected}, found {actual}).",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print(f"{env_file} matches its baseline.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check account-linking settings and detect .env drift."
    )
    parser.add_argument("command", choices=("check", "record", "verify"))
    parser.add_argument("--env-file", type=Path, default=Path(".env"))
    parser.add_argument("--hash-file", type=Path)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command != "check" and args.hash_file is None:
        parser.error(f"'{args.command}' requires --hash-file")

    try:
        settings = load_linking_settings(args.env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except MissingSettingsError as exc:
        print(f"Missing required settings: {', '.join(exc.keys)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except ValidationError as exc:
        print(f"Invalid settings:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error while loading settings: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    _warn_on_fallbacks(settings)
    if args.command == "record":
        return record_baseline(args.env_file, args.hash_file)
    if args.command == "verify":
        return verify_baseline(args.env_file, args.hash_file)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

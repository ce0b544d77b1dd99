# config/validation.py

"""
Environment variable validation for the museum importer.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple

from .base import _coerce_bool, _parse_adapter_list

KNOWN_ADAPTERS = ("opensea", "tezos")


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key in ("your-secret-key", "your_secret_key"):
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not os.environ.get("DATABASE_URL"):
        errors.append(
            "DATABASE_URL is required in production. "
            "Set it to your PostgreSQL connection string."
        )

    if _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=False):
        adapters = _parse_adapter_list(os.environ.get("IMPORTER_ADAPTERS", ""))
        unknown = [adapter for adapter in adapters if adapter not in KNOWN_ADAPTERS]
        if not adapters:
            errors.append("IMPORTER_ADAPTERS is required when IMPORTER_ENABLED=true")
        if unknown:
            errors.append(f"IMPORTER_ADAPTERS contains unknown adapters: {', '.join(unknown)}")
        if "opensea" in adapters and not os.environ.get("OPENSEA_API_KEY"):
            errors.append("OPENSEA_API_KEY is required when the opensea adapter is enabled")
        if not os.environ.get("IMPORTER_API_TOKEN"):
            errors.append("IMPORTER_API_TOKEN is required in production to guard the queue trigger endpoint")

    if _coerce_bool(os.environ.get("IMPORTER_WORKER_ENABLED"), default=False):
        if not os.environ.get("CELERY_BROKER_URL"):
            errors.append("CELERY_BROKER_URL is required when IMPORTER_WORKER_ENABLED=true")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.

    Args:
        flask_env: Flask environment (development, production, testing)
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("See .env.example for required configuration.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)

"""Collecting secret values from arguments, the environment or a prompt."""

from __future__ import annotations

import getpass
import logging
import os
from typing import Iterable

_log = logging.getLogger(__name__)


def new_secrets(secret_list: Iterable[str]) -> dict[str, str]:
    """Build the secret map from ``NAME=value`` or bare ``NAME`` entries.

    Names are upper-cased. A bare name takes its value from a non-empty
    environment variable of that name, or else is asked for interactively.
    """
    secrets: dict[str, str] = {}
    for entry in secret_list:
        name, sep, value = entry.partition("=")
        name = name.upper()
        if name in secrets:
            _log.error("Secret %s is already defined (secrets are case insensitive)", name)
        if sep:
            secrets[name] = value
            continue
        env_value = os.environ.get(name)
        if env_value:
            secrets[name] = env_value
            continue
        try:
            secrets[name] = getpass.getpass(f"Provide value for '{name}': ")
        except (EOFError, OSError) as exc:
            _log.error("failed to read input: %s", exc)
            raise RuntimeError(f"failed to read input: {exc}") from exc
    return secrets
"""Command-line configuration: rc files, env files, matrix filters and image choice."""

from __future__ import annotations

import os
import re
import sys
from typing import Iterable, Optional, Sequence

from dotenv import dotenv_values

CONFIG_FILE_NAME = ".actrc"
_XDG_CANDIDATES = ("act/actrc", CONFIG_FILE_NAME)
_WHITESPACE = re.compile(r"\s")

_SURVEY_MESSAGE = (
    "Please choose the default image you want to use with act:\n\n"
    "  - Large size image: +20GB Docker image, includes almost all tools used on "
    "GitHub Actions (IMPORTANT: currently only ubuntu-18.04 platform is available)\n"
    "  - Medium size image: ~500MB, includes only necessary tools to bootstrap "
    "actions and aims to be compatible with all actions\n"
    "  - Micro size image: <200MB, contains only NodeJS required to bootstrap "
    "actions, doesn't work with all actions\n\n"
    "Default image and other options can be changed manually in ~/.actrc"
)

IMAGE_OPTIONS = {
    "Large": (
        "-P ubuntu-latest=catthehacker/ubuntu:full-latest\n"
        "-P ubuntu-latest=catthehacker/ubuntu:full-20.04\n"
        "-P ubuntu-18.04=catthehacker/ubuntu:full-18.04\n"
    ),
    "Medium": (
        "-P ubuntu-latest=catthehacker/ubuntu:act-latest\n"
        "-P ubuntu-22.04=catthehacker/ubuntu:act-22.04\n"
        "-P ubuntu-20.04=catthehacker/ubuntu:act-20.04\n"
        "-P ubuntu-18.04=catthehacker/ubuntu:act-18.04\n"
    ),
    "Micro": (
        "-P ubuntu-latest=node:16-buster-slim\n"
        "-P ubuntu-22.04=node:16-bullseye-slim\n"
        "-P ubuntu-20.04=node:16-buster-slim\n"
        "-P ubuntu-18.04=node:16-buster-slim\n"
    ),
}
DEFAULT_IMAGE_OPTION = "Medium"


def _xdg_config_dirs() -> list[str]:
    home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(
        os.path.expanduser("~"), ".config"
    )
    extra = os.environ.get("XDG_CONFIG_DIRS") or "/etc/xdg"
    return [home, *(d for d in extra.split(os.pathsep) if d)]


def _search_config_file(name: str) -> str:
    for directory in _xdg_config_dirs():
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate):
            return candidate
    return ""


def config_locations() -> list[str]:
    """Return the rc files to read, in order: home, XDG config, current directory.

    The XDG entry is an empty string when no such file exists.
    """
    home = os.path.expanduser("~")
    actrc_xdg = next(
        (found for found in map(_search_config_file, _XDG_CANDIDATES) if found), ""
    )
    return [
        os.path.join(home, CONFIG_FILE_NAME),
        actrc_xdg,
        os.path.normpath(os.path.join(".", CONFIG_FILE_NAME)),
    ]


def read_args_file(path: str, split: bool) -> list[str]:
    """Read arguments from an rc file; a missing file gives no arguments.

    With ``split`` only lines starting with ``-`` are kept, each split once at
    the first whitespace into flag and value. Without it every stripped line
    is returned as is.
    """
    if not path:
        return []
    try:
        with open(path, encoding="utf-8") as file:
            lines = file.read().splitlines()
    except OSError:
        return []
    args: list[str] = []
    for line in lines:
        arg = line.strip()
        if split:
            if arg.startswith("-"):
                args.extend(_WHITESPACE.split(arg, maxsplit=1))
        else:
            args.append(arg)
    return args


def collect_args(argv: Optional[Sequence[str]] = None) -> list[str]:
    """Return the arguments from every rc file followed by ``argv``."""
    if argv is None:
        argv = sys.argv[1:]
    args: list[str] = []
    for location in config_locations():
        args.extend(read_args_file(location, True))
    args.extend(argv)
    return args


def parse_envs(entries: Optional[Iterable[str]]) -> dict[str, str]:
    """Turn ``NAME=value`` or bare ``NAME`` entries into a mapping."""
    envs: dict[str, str] = {}
    for entry in entries or ():
        name, _, value = entry.partition("=")
        envs[name] = value
    return envs


def read_envs(path: str) -> dict[str, str]:
    """Read a dotenv file; a file that does not exist gives an empty mapping."""
    if not path or not os.path.exists(path):
        return {}
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"Error loading from {path}: {exc}") from exc
    return {key: "" if value is None else value for key, value in values.items()}


def parse_matrix(matrix: Iterable[str]) -> dict[str, dict[str, bool]]:
    """Parse ``key:value`` matrix filters into ``{key: {value: True}}``."""
    matrixes: dict[str, dict[str, bool]] = {}
    for entry in matrix:
        parts = entry.split(":", 1)
        if len(parts) < 2:
            raise ValueError(f"Invalid matrix format. Failed to parse {entry}")
        key, value = parts
        matrixes.setdefault(key, {})[value] = True
    return matrixes


def _choose_option(answer: str) -> Optional[str]:
    answer = answer.strip()
    if not answer:
        return DEFAULT_IMAGE_OPTION
    names = list(IMAGE_OPTIONS)
    if answer.isdigit() and 1 <= int(answer) <= len(names):
        return names[int(answer) - 1]
    for name in names:
        if name.lower() == answer.lower():
            return name
    return None


def default_image_survey(actrc: str) -> str:
    """Ask which default image to use and write its platform flags to ``actrc``.

    Returns the chosen option name.
    """
    names = list(IMAGE_OPTIONS)
    print(_SURVEY_MESSAGE)
    for number, name in enumerate(names, start=1):
        marker = " (default)" if name == DEFAULT_IMAGE_OPTION else ""
        print(f"  {number}) {name}{marker}")
    while True:
        choice = _choose_option(input("> "))
        if choice is not None:
            break
        print(f"Please answer one of: {', '.join(names)}")
    with open(actrc, "w", encoding="utf-8") as file:
        file.write(IMAGE_OPTIONS[choice])
    return choice
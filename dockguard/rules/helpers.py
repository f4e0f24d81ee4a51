"""Small tokenizing helpers shared by the Dockerfile rules."""

from __future__ import annotations

import json
import shlex
from typing import List, NamedTuple, Optional

from dockguard.parsers.dockerfile import Instruction

COPY_FLAG_PREFIX = "--"


class ImageRef(NamedTuple):
    name: str
    tag: Optional[str]
    digest: Optional[str]

    @property
    def repository(self) -> str:
        """Last path component of the image name, lowercased."""

        return self.name.rsplit("/", 1)[-1].lower()


def split_words(arguments: str) -> List[str]:
    try:
        return shlex.split(arguments)
    except ValueError:
        return arguments.split()


def exec_form(arguments: str) -> Optional[List[str]]:
    """Return the JSON array of an exec-form instruction, or ``None``."""

    stripped = arguments.strip()
    if not stripped.startswith("["):
        return None
    try:
        value = json.loads(stripped)
    except ValueError:
        return None
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    return None


def variable_names(inst: Instruction) -> List[str]:
    """Names declared by an ENV or ARG instruction."""

    words = split_words(inst.arguments)
    if not words:
        return []
    if inst.keyword == "ENV" and "=" not in words[0]:
        return [words[0]]
    return [word.split("=", 1)[0] for word in words if word.split("=", 1)[0]]


def strip_flags(words: List[str]) -> List[str]:
    return [word for word in words if not word.startswith(COPY_FLAG_PREFIX)]


def flag_value(inst: Instruction, flag: str) -> Optional[str]:
    prefix = f"--{flag}="
    for word in split_words(inst.arguments):
        if word.startswith(prefix):
            return word[len(prefix):]
    return None


def copy_paths(inst: Instruction) -> List[str]:
    """Return the sources and destination of a COPY/ADD, destination last."""

    array = exec_form(inst.arguments)
    if array is not None:
        return array
    return strip_flags(split_words(inst.arguments.split("\n", 1)[0]))


def copy_sources(inst: Instruction) -> List[str]:
    paths = copy_paths(inst)
    return paths[:-1] if len(paths) >= 2 else []


def image_ref(inst: Instruction) -> Optional[ImageRef]:
    """Parse the image reference of a FROM instruction."""

    words = strip_flags(inst.arguments.split())
    if not words:
        return None
    return parse_image(words[0])


def parse_image(reference: str) -> ImageRef:
    digest = None
    if "@" in reference:
        reference, digest = reference.split("@", 1)
    tag = None
    last_slash = reference.rfind("/")
    colon = reference.rfind(":")
    if colon > last_slash:
        reference, tag = reference[:colon], reference[colon + 1:]
    return ImageRef(name=reference, tag=tag, digest=digest)


def basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]

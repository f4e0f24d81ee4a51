"""Pattern tables backing the heuristic rules.

Every fuzzy check reads its keywords from :class:`PatternTables` so a config
file can extend or replace a table without touching rule code.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Tuple

DOCKER_SOCKET = "/var/run/docker.sock"


@dataclass(frozen=True)
class PatternTables:
    docker_socket_paths: Tuple[str, ...] = (DOCKER_SOCKET, "/run/docker.sock")
    secret_name_keywords: Tuple[str, ...] = (
        "key",
        "secret",
        "password",
        "passwd",
        "token",
        "credential",
        "api_key",
    )
    secret_file_patterns: Tuple[str, ...] = (
        ".env",
        "*.env",
        "*.pem",
        "*.key",
        "*.p12",
        "*.pfx",
        "id_rsa",
        "id_dsa",
        "id_ecdsa",
        "id_ed25519",
        ".npmrc",
        ".pypirc",
        ".netrc",
        ".git-credentials",
        "credentials",
        "credentials.json",
        "secrets.*",
        "*secret*",
    )
    sensitive_ports: Tuple[str, ...] = (
        "22",
        "23",
        "2375",
        "2376",
        "3306",
        "5432",
        "6379",
        "9200",
        "27017",
    )
    dangerous_capabilities: Tuple[str, ...] = (
        "ALL",
        "SYS_ADMIN",
        "NET_ADMIN",
        "SYS_PTRACE",
        "SYS_MODULE",
        "SYS_RAWIO",
        "SYS_BOOT",
        "SYS_TIME",
        "DAC_READ_SEARCH",
        "DAC_OVERRIDE",
        "BPF",
        "PERFMON",
        "MAC_ADMIN",
    )
    bloated_base_images: Tuple[str, ...] = (
        "ubuntu",
        "debian",
        "centos",
        "fedora",
        "amazonlinux",
        "oraclelinux",
        "rockylinux",
        "almalinux",
        "node",
        "python",
        "ruby",
        "golang",
        "openjdk",
        "php",
        "perl",
        "rust",
        "buildpack-deps",
    )
    slim_tag_markers: Tuple[str, ...] = ("slim", "alpine", "distroless", "minimal", "chiseled")
    dependency_install_commands: Tuple[str, ...] = (
        "npm install",
        "npm ci",
        "yarn install",
        "pnpm install",
        "pip install",
        "pip3 install",
        "poetry install",
        "pipenv install",
        "bundle install",
        "composer install",
        "go mod download",
        "cargo fetch",
        "mvn dependency:go-offline",
        "gradle dependencies",
    )
    build_toolchain_packages: Tuple[str, ...] = (
        "build-essential",
        "build-base",
        "gcc",
        "g++",
        "clang",
        "make",
        "cmake",
        "maven",
        "gradle",
        "golang",
    )


TABLE_NAMES = tuple(table.name for table in fields(PatternTables))


def merge_patterns(base: PatternTables, overrides: Mapping[str, Any]) -> PatternTables:
    """Return ``base`` with the named tables replaced by ``overrides``.

    Raises ``KeyError`` for an unknown table and ``TypeError`` for a table that
    is not a list of strings.
    """

    changes = {}
    for name, values in overrides.items():
        if name not in TABLE_NAMES:
            raise KeyError(name)
        if isinstance(values, str) or not isinstance(values, (list, tuple)):
            raise TypeError(f"pattern table {name!r} must be a list of strings")
        changes[name] = tuple(str(value) for value in values)
    return replace(base, **changes)

"""Security checks over parsed Dockerfiles (SEC-001 .. SEC-010)."""

from __future__ import annotations

import fnmatch
import re
from typing import List, Optional

from dockguard.parsers.dockerfile import DockerfileDocument, Instruction
from dockguard.parsers.kinds import DocumentKind
from dockguard.result import RawMatch
from dockguard.severity import Severity

from . import ScanContext, rule
from .helpers import basename, copy_paths, copy_sources, exec_form, flag_value, split_words, variable_names

DF = DocumentKind.DOCKERFILE

CURL_PIPE_PATTERN = re.compile(
    r"\b(curl|wget)\b[^|;&]*\|\s*(sudo\s+)?(sh|bash|zsh|dash|ash|/bin/sh|/bin/bash)\b",
    re.IGNORECASE,
)
SUDO_PATTERN = re.compile(r"(?:^|[\s;&|(])sudo\s")
WORLD_WRITABLE_CHMOD = re.compile(
    r"\bchmod\s+(?:-\S+\s+)*(?:[0-7]?[0-7]{2}[2367]\b|[ugoa]*[oa][ugoa]*\+[rwxXst]*w)"
)
WORLD_WRITABLE_OCTAL = re.compile(r"^[0-7]?[0-7]{2}[2367]$")
RM_PATTERN = re.compile(r"(?:^|[\s;&|(])rm\s")
ROOT_USERS = {"root", "0"}


@rule(
    "SEC-001",
    DF,
    Severity.CRITICAL,
    "Docker socket exposed to the container",
    cwe="CWE-250",
    message="Access to the Docker socket grants root-equivalent control of the host.",
    fix="Remove the Docker socket reference; use a rootless builder or a socket proxy with an allow-list.",
)
def docker_socket_exposure(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for inst in document.instructions:
        if inst.keyword not in ("VOLUME", "RUN", "CMD", "ENTRYPOINT"):
            continue
        if any(path in inst.arguments for path in context.patterns.docker_socket_paths):
            matches.append(RawMatch(line=inst.line, matched_text=inst.text))
    return matches


@rule(
    "SEC-002",
    DF,
    Severity.HIGH,
    "Container runs as root",
    cwe="CWE-250",
    message="The final stage never switches to a non-root USER.",
    fix="Create an unprivileged user and add `USER <name>` before CMD/ENTRYPOINT.",
)
def runs_as_root(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    final = document.final_stage()
    if not final:
        return []
    users = [inst for inst in final if inst.keyword == "USER"]
    if not users:
        anchor = document.stage_from(document.final_stage_index) or final[0]
        return [RawMatch(line=anchor.line, matched_text=anchor.text)]
    last = users[-1]
    name = last.arguments.split(":", 1)[0].strip()
    if name.lower() in ROOT_USERS:
        return [
            RawMatch(
                line=last.line,
                matched_text=last.text,
                message="The final stage switches back to the root user.",
            )
        ]
    return []


@rule(
    "SEC-003",
    DF,
    Severity.CRITICAL,
    "Secret baked into ENV/ARG",
    cwe="CWE-798",
    message="Values set with ENV or ARG persist in image metadata and history.",
    fix="Pass secrets at build time with `RUN --mount=type=secret` or inject them at runtime.",
)
def secret_in_env(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    keywords = [keyword.lower() for keyword in context.patterns.secret_name_keywords]
    matches = []
    for inst in document.instructions:
        if inst.keyword not in ("ENV", "ARG"):
            continue
        for name in variable_names(inst):
            if any(keyword in name.lower() for keyword in keywords):
                matches.append(
                    RawMatch(
                        line=inst.line,
                        matched_text=inst.text,
                        message=f"{inst.keyword} variable '{name}' looks like a secret.",
                    )
                )
                break
    return matches


@rule(
    "SEC-004",
    DF,
    Severity.HIGH,
    "ADD downloads a remote URL",
    cwe="CWE-494",
    message="Remote ADD fetches content without integrity verification.",
    fix="Download with curl/wget and verify a checksum, or use `ADD --checksum=sha256:...`.",
)
def remote_add(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for inst in document.instructions:
        if inst.keyword != "ADD" or flag_value(inst, "checksum"):
            continue
        if any(source.startswith(("http://", "https://")) for source in copy_sources(inst)):
            matches.append(RawMatch(line=inst.line, matched_text=inst.text))
    return matches


@rule(
    "SEC-005",
    DF,
    Severity.HIGH,
    "Remote script piped into a shell",
    cwe="CWE-494",
    message="Piping a downloaded script into a shell executes unverified code.",
    fix="Download the script, verify its checksum or signature, then execute it.",
)
def curl_pipe_shell(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN" and CURL_PIPE_PATTERN.search(inst.arguments)
    ]


@rule(
    "SEC-006",
    DF,
    Severity.MEDIUM,
    "CMD/ENTRYPOINT in shell form",
    message="Shell form runs the process under /bin/sh, which does not forward signals.",
    fix='Use exec form, e.g. CMD ["npm", "start"].',
)
def shell_form_command(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for inst in document.final_stage():
        if inst.keyword not in ("CMD", "ENTRYPOINT") or exec_form(inst.arguments) is not None:
            continue
        words = split_words(inst.arguments)
        fix = None
        if words:
            fix = f"Use exec form: {inst.keyword} [" + ", ".join(f'"{word}"' for word in words) + "]"
        matches.append(RawMatch(line=inst.line, matched_text=inst.text, suggested_fix=fix))
    return matches


@rule(
    "SEC-007",
    DF,
    Severity.MEDIUM,
    "sudo used in RUN",
    cwe="CWE-250",
    message="sudo inside an image keeps a privilege-escalation path available at runtime.",
    fix="Run privileged steps before switching USER instead of invoking sudo.",
)
def sudo_usage(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN" and SUDO_PATTERN.search(inst.arguments)
    ]


@rule(
    "SEC-008",
    DF,
    Severity.HIGH,
    "World-writable permissions",
    cwe="CWE-732",
    message="World-writable files let any process in the container tamper with them.",
    fix="Grant the minimum permissions needed (e.g. 755 for directories, 644 for files) and set ownership with --chown.",
)
def world_writable(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for inst in document.instructions:
        if inst.keyword == "RUN" and WORLD_WRITABLE_CHMOD.search(inst.arguments):
            matches.append(RawMatch(line=inst.line, matched_text=inst.text))
        elif inst.keyword in ("COPY", "ADD"):
            mode = flag_value(inst, "chmod")
            if mode and WORLD_WRITABLE_OCTAL.match(mode):
                matches.append(RawMatch(line=inst.line, matched_text=inst.text))
    return matches


@rule(
    "SEC-009",
    DF,
    Severity.MEDIUM,
    "Sensitive port exposed",
    cwe="CWE-668",
    message="Administrative and database ports should not be published by application images.",
    fix="Drop the EXPOSE entry and reach the service over an internal network or `docker exec`.",
)
def sensitive_port(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    sensitive = set(context.patterns.sensitive_ports)
    matches = []
    for inst in document.instructions:
        if inst.keyword != "EXPOSE":
            continue
        ports = [word.split("/", 1)[0] for word in inst.arguments.split()]
        flagged = [port for port in ports if port in sensitive]
        if flagged:
            matches.append(
                RawMatch(
                    line=inst.line,
                    matched_text=inst.text,
                    message=f"Exposes sensitive port(s): {', '.join(flagged)}.",
                )
            )
    return matches


@rule(
    "SEC-010",
    DF,
    Severity.CRITICAL,
    "Secret file persisted in an image layer",
    cwe="CWE-538",
    message="Deleting a copied secret in a later layer leaves it recoverable from the earlier layer.",
    fix="Mount the file with `RUN --mount=type=secret` or copy it only into a discarded build stage.",
)
def secret_copied_then_removed(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for stage in document.stages():
        for position, inst in enumerate(stage):
            if inst.keyword not in ("COPY", "ADD"):
                continue
            names = _secret_names(inst, context.patterns.secret_file_patterns)
            if not names:
                continue
            removal = _find_removal(stage[position + 1:], names)
            if removal is not None:
                matches.append(
                    RawMatch(
                        line=inst.line,
                        matched_text=inst.text,
                        message=(
                            f"Secret file copied here is removed on line {removal.line}, "
                            "but remains in the earlier layer."
                        ),
                    )
                )
    return matches


def _secret_names(inst: Instruction, patterns) -> List[str]:
    paths = copy_paths(inst)
    if len(paths) < 2:
        return []
    sources = [basename(path) for path in paths[:-1]]
    secret_sources = [
        name for name in sources if name and any(fnmatch.fnmatch(name.lower(), pattern) for pattern in patterns)
    ]
    if not secret_sources:
        return []
    names = list(secret_sources)
    destination = paths[-1]
    # a single source copied to a file path may be renamed; directories keep the source name
    target = basename(destination)
    if len(sources) == 1 and not destination.endswith("/") and target not in ("", ".", ".."):
        names.append(target)
    return names


def _find_removal(following, names: List[str]) -> Optional[Instruction]:
    patterns = [re.compile(r"(?:^|[\s/'\"])" + re.escape(name) + r"(?=$|[\s'\";&|)])") for name in names]
    for inst in following:
        if inst.keyword != "RUN" or not RM_PATTERN.search(inst.arguments):
            continue
        if any(pattern.search(inst.arguments) for pattern in patterns):
            return inst
    return None

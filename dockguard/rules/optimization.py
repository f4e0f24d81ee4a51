"""Image size and build-cache checks over parsed Dockerfiles (OPT-001 .. OPT-013)."""

from __future__ import annotations

import re
from typing import List

from dockguard.parsers.dockerfile import DockerfileDocument
from dockguard.parsers.kinds import DocumentKind
from dockguard.result import RawMatch
from dockguard.severity import Severity

from . import ScanContext, rule
from .helpers import copy_sources, image_ref

DF = DocumentKind.DOCKERFILE
OPT = "optimization"

APT_INSTALL = re.compile(r"\bapt(?:-get)?\s+(?:-\S+\s+)*install\b")
APT_LISTS_CLEANUP = re.compile(r"rm\s+-(?:rf|fr|r)\s+/var/lib/apt/lists")
APT_UPGRADE = re.compile(r"\bapt(?:-get)?\s+(?:-\S+\s+)*(?:upgrade|dist-upgrade|full-upgrade)\b")
PIP_INSTALL = re.compile(r"\bpip3?\s+install\b")
APK_ADD = re.compile(r"\bapk\s+(?:-\S+\s+)*add\b")
PACKAGE_INSTALL = re.compile(r"\b(?:apt(?:-get)?\s+(?:-\S+\s+)*install|apk\s+(?:-\S+\s+)*add|yum\s+install|dnf\s+install)\b")
RUN_CD = re.compile(r"^\s*cd\s+\S+\s*(?:&&|;)")
ARCHIVE_SUFFIX = re.compile(r"\.(tar|tar\.gz|tgz|tar\.bz2|tbz2|tar\.xz|txz)$", re.IGNORECASE)
BROAD_CONTEXT_SOURCES = {".", "./", "*", "./*"}


@rule(
    "OPT-001",
    DF,
    Severity.MEDIUM,
    "Base image not pinned",
    category=OPT,
    message="Untagged or :latest base images make builds irreproducible.",
    fix="Pin a specific version tag, ideally with a digest (image:1.2.3@sha256:...).",
)
def unpinned_base_image(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    stage_names = document.stage_names
    matches = []
    for inst in document.instructions:
        if inst.keyword != "FROM":
            continue
        ref = image_ref(inst)
        if ref is None or ref.digest or ref.name.lower() == "scratch" or "$" in ref.name:
            continue
        if ref.tag is None and ref.name.lower() in stage_names:
            continue
        if ref.tag is None or ref.tag.lower() == "latest":
            matches.append(RawMatch(line=inst.line, matched_text=inst.text))
    return matches


@rule(
    "OPT-002",
    DF,
    Severity.MEDIUM,
    "Bloated base image",
    category=OPT,
    message="The runtime stage is built on a full OS or full language image.",
    fix="Use a slim, alpine or distroless variant for the final stage.",
)
def bloated_base_image(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    inst = document.stage_from(document.final_stage_index)
    if inst is None:
        return []
    ref = image_ref(inst)
    if ref is None or ref.repository not in context.patterns.bloated_base_images:
        return []
    tag = (ref.tag or "").lower()
    if any(marker in tag for marker in context.patterns.slim_tag_markers):
        return []
    return [RawMatch(line=inst.line, matched_text=inst.text)]


@rule(
    "OPT-003",
    DF,
    Severity.MEDIUM,
    "Build context copied before installing dependencies",
    category=OPT,
    message="Copying the whole build context first invalidates the dependency layer on every source change.",
    fix="Copy only dependency manifests (package.json, requirements.txt, ...), install, then copy the rest.",
)
def cache_busting_copy(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    commands = context.patterns.dependency_install_commands
    matches = []
    for stage in document.stages():
        for position, inst in enumerate(stage):
            if inst.keyword not in ("COPY", "ADD") or "--from=" in inst.arguments:
                continue
            if not any(source in BROAD_CONTEXT_SOURCES for source in copy_sources(inst)):
                continue
            later_installs = [
                following
                for following in stage[position + 1:]
                if following.keyword == "RUN" and any(command in following.arguments for command in commands)
            ]
            if later_installs:
                matches.append(
                    RawMatch(
                        line=inst.line,
                        matched_text=inst.text,
                        message=f"Dependencies are installed on line {later_installs[0].line}, after the full context copy.",
                    )
                )
    return matches


@rule(
    "OPT-004",
    DF,
    Severity.MEDIUM,
    "apt lists not cleaned up",
    category=OPT,
    message="apt package lists stay in the layer when not removed in the same RUN.",
    fix="Append `&& rm -rf /var/lib/apt/lists/*` to the install command.",
)
def apt_cache_left(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN"
        and APT_INSTALL.search(inst.arguments)
        and not APT_LISTS_CLEANUP.search(inst.arguments)
        and "--mount=type=cache" not in inst.arguments
    ]


@rule(
    "OPT-005",
    DF,
    Severity.MEDIUM,
    "apt installs recommended packages",
    category=OPT,
    message="Recommended packages add size the image rarely needs.",
    fix="Use `apt-get install --no-install-recommends`.",
)
def apt_recommends(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN"
        and APT_INSTALL.search(inst.arguments)
        and "--no-install-recommends" not in inst.arguments
    ]


@rule(
    "OPT-006",
    DF,
    Severity.MEDIUM,
    "pip cache kept in image",
    category=OPT,
    message="pip keeps downloaded wheels in its cache directory inside the layer.",
    fix="Use `pip install --no-cache-dir`.",
)
def pip_cache(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN"
        and PIP_INSTALL.search(inst.arguments)
        and "--no-cache-dir" not in inst.arguments
        and "PIP_NO_CACHE_DIR" not in inst.arguments
        and "--mount=type=cache" not in inst.arguments
    ]


@rule(
    "OPT-007",
    DF,
    Severity.MEDIUM,
    "apk cache kept in image",
    category=OPT,
    message="apk keeps its package index in the layer unless told otherwise.",
    fix="Use `apk add --no-cache`.",
)
def apk_cache(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN" and APK_ADD.search(inst.arguments) and "--no-cache" not in inst.arguments
    ]


@rule(
    "OPT-008",
    DF,
    Severity.MEDIUM,
    "Consecutive RUN instructions",
    category=OPT,
    message="Each RUN adds a layer; adjacent RUN instructions can usually be merged.",
    fix="Combine adjacent RUN instructions with `&&`.",
)
def consecutive_runs(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for stage in document.stages():
        for previous, inst in zip(stage, stage[1:]):
            if inst.keyword == "RUN" and previous.keyword == "RUN":
                matches.append(
                    RawMatch(
                        line=inst.line,
                        matched_text=inst.text,
                        message=f"RUN follows the RUN on line {previous.line}.",
                    )
                )
    return matches


@rule(
    "OPT-009",
    DF,
    Severity.MEDIUM,
    "ADD used for local files",
    category=OPT,
    message="ADD has implicit URL and archive behaviour; COPY is explicit for local files.",
    fix="Replace ADD with COPY.",
)
def add_instead_of_copy(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for inst in document.instructions:
        if inst.keyword != "ADD":
            continue
        sources = copy_sources(inst)
        if not sources:
            continue
        remote = any(source.startswith(("http://", "https://", "git@")) for source in sources)
        archive = any(ARCHIVE_SUFFIX.search(source) for source in sources)
        if not remote and not archive:
            matches.append(
                RawMatch(
                    line=inst.line,
                    matched_text=inst.text,
                    suggested_fix="Use COPY " + inst.arguments.split("\n", 1)[0],
                )
            )
    return matches


@rule(
    "OPT-010",
    DF,
    Severity.MEDIUM,
    "No HEALTHCHECK for an exposed service",
    category=OPT,
    message="The image exposes a port but gives the runtime no way to check service health.",
    fix="Add `HEALTHCHECK CMD curl -f http://localhost:<port>/ || exit 1` (or suppress when an orchestrator probes health).",
)
def missing_healthcheck(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    final = document.final_stage()
    exposes = [inst for inst in final if inst.keyword == "EXPOSE"]
    if not exposes or any(inst.keyword == "HEALTHCHECK" for inst in final):
        return []
    return [RawMatch(line=exposes[0].line, matched_text=exposes[0].text)]


@rule(
    "OPT-011",
    DF,
    Severity.MEDIUM,
    "Build toolchain shipped in a single-stage image",
    category=OPT,
    message="Compilers and build tools installed in the only stage end up in the runtime image.",
    fix="Use a multi-stage build: compile in a builder stage and COPY --from it into a slim runtime stage.",
)
def single_stage_toolchain(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    if document.stage_count != 1:
        return []
    packages = context.patterns.build_toolchain_packages
    matches = []
    for inst in document.instructions:
        if inst.keyword != "RUN" or not PACKAGE_INSTALL.search(inst.arguments):
            continue
        words = set(inst.arguments.split())
        found = [package for package in packages if package in words]
        if found:
            matches.append(
                RawMatch(
                    line=inst.line,
                    matched_text=inst.text,
                    message=f"Installs build tooling ({', '.join(found)}) in a single-stage build.",
                )
            )
    return matches


@rule(
    "OPT-012",
    DF,
    Severity.MEDIUM,
    "Distribution upgrade inside the image",
    category=OPT,
    message="apt upgrade makes the image depend on whatever the mirrors serve at build time.",
    fix="Pull a newer base image tag instead of upgrading packages in the Dockerfile.",
)
def apt_upgrade(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN" and APT_UPGRADE.search(inst.arguments)
    ]


@rule(
    "OPT-013",
    DF,
    Severity.MEDIUM,
    "RUN cd instead of WORKDIR",
    category=OPT,
    message="Changing directories inside RUN is hard to follow and does not persist across instructions.",
    fix="Set the directory with WORKDIR.",
)
def run_cd(document: DockerfileDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(line=inst.line, matched_text=inst.text)
        for inst in document.instructions
        if inst.keyword == "RUN" and RUN_CD.search(inst.arguments)
    ]

"""Security checks over docker-compose services (COMPOSE-SEC-001 .. 009)."""

from __future__ import annotations

from typing import Iterator, List, Tuple

from dockguard.parsers.compose import ComposeDocument, ServiceSpec
from dockguard.parsers.kinds import DocumentKind
from dockguard.result import RawMatch
from dockguard.severity import Severity

from . import ScanContext, rule

COMPOSE = DocumentKind.COMPOSE
NO_NEW_PRIVILEGES = "no-new-privileges:true"
UNCONFINED_SECCOMP = "seccomp:unconfined"
DISABLED_MAC_PROFILES = ("label:disable", "apparmor:unconfined")


def _services(document: ComposeDocument) -> Iterator[ServiceSpec]:
    for name in sorted(document.services):
        yield document.services[name]


def _normalize_option(option: str) -> str:
    """Compose accepts both ``key:value`` and ``key=value``."""

    return option.strip().replace("=", ":", 1).replace(" ", "").lower()


def _options(service: ServiceSpec) -> List[Tuple[str, str]]:
    return sorted((_normalize_option(option), option) for option in service.security_opt)


@rule(
    "COMPOSE-SEC-001",
    COMPOSE,
    Severity.CRITICAL,
    "Privileged container",
    cwe="CWE-250",
    message="privileged: true disables nearly every isolation boundary between container and host.",
    fix="Remove `privileged: true` and grant only the specific capabilities the service needs.",
)
def privileged_service(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(
            line=service.line_of("privileged"),
            matched_text="privileged: true",
            message=f"Service '{service.name}' runs privileged.",
        )
        for service in _services(document)
        if service.privileged is True
    ]


@rule(
    "COMPOSE-SEC-002",
    COMPOSE,
    Severity.CRITICAL,
    "Docker socket mounted into a service",
    cwe="CWE-250",
    message="Mounting the Docker socket gives the service root-equivalent control of the host.",
    fix="Remove the socket mount or front it with a read-only socket proxy.",
)
def docker_socket_mount(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    sockets = context.patterns.docker_socket_paths
    matches = []
    for service in _services(document):
        for mount in service.volumes:
            if mount.source in sockets or any(socket in mount.source for socket in sockets):
                matches.append(
                    RawMatch(
                        line=mount.line,
                        matched_text=mount.raw,
                        message=f"Service '{service.name}' mounts the Docker socket.",
                    )
                )
    return matches


@rule(
    "COMPOSE-SEC-003",
    COMPOSE,
    Severity.HIGH,
    "Seccomp profile disabled",
    cwe="CWE-693",
    message="seccomp:unconfined removes the syscall filter that blocks kernel attack surface.",
    fix="Drop `seccomp:unconfined` or supply a custom seccomp profile.",
)
def seccomp_unconfined(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for service in _services(document):
        for normalized, option in _options(service):
            if normalized == UNCONFINED_SECCOMP:
                matches.append(
                    RawMatch(
                        line=service.line_of("security_opt", option),
                        matched_text=option,
                        message=f"Service '{service.name}' disables seccomp.",
                    )
                )
    return matches


@rule(
    "COMPOSE-SEC-004",
    COMPOSE,
    Severity.HIGH,
    "Host network mode",
    cwe="CWE-668",
    message="network_mode: host shares the host network stack with the container.",
    fix="Use a bridge network and publish only the required ports.",
)
def host_network(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(
            line=service.line_of("network_mode"),
            matched_text=f"network_mode: {service.network_mode}",
            message=f"Service '{service.name}' uses the host network.",
        )
        for service in _services(document)
        if (service.network_mode or "").strip().lower() == "host"
    ]


@rule(
    "COMPOSE-SEC-005",
    COMPOSE,
    Severity.HIGH,
    "Dangerous capability added",
    cwe="CWE-250",
    message="The added capability allows container escape or host tampering.",
    fix="Remove the capability; start from `cap_drop: [ALL]` and add back only what is required.",
)
def dangerous_capability(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    dangerous = {capability.upper() for capability in context.patterns.dangerous_capabilities}
    matches = []
    for service in _services(document):
        for capability in sorted(service.cap_add):
            normalized = capability.upper()
            if normalized.startswith("CAP_"):
                normalized = normalized[4:]
            if normalized in dangerous:
                matches.append(
                    RawMatch(
                        line=service.line_of("cap_add", capability),
                        matched_text=f"cap_add: {capability}",
                        message=f"Service '{service.name}' adds {capability}.",
                    )
                )
    return matches


@rule(
    "COMPOSE-SEC-006",
    COMPOSE,
    Severity.HIGH,
    "Host PID or IPC namespace shared",
    cwe="CWE-668",
    message="Sharing the host PID or IPC namespace exposes host processes and memory to the container.",
    fix="Remove `pid: host` / `ipc: host`.",
)
def host_namespaces(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for service in _services(document):
        for key in ("pid", "ipc"):
            value = getattr(service, key)
            if (value or "").strip().lower() == "host":
                matches.append(
                    RawMatch(
                        line=service.line_of(key),
                        matched_text=f"{key}: {value}",
                        message=f"Service '{service.name}' shares the host {key.upper()} namespace.",
                    )
                )
    return matches


@rule(
    "COMPOSE-SEC-007",
    COMPOSE,
    Severity.MEDIUM,
    "no-new-privileges not set",
    cwe="CWE-269",
    message="Without no-new-privileges, setuid binaries can raise privileges inside the container.",
    fix="Add `security_opt: [\"no-new-privileges:true\"]`.",
)
def missing_no_new_privileges(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for service in _services(document):
        normalized = {option for option, _ in _options(service)}
        if NO_NEW_PRIVILEGES in normalized or "no-new-privileges" in normalized:
            continue
        matches.append(
            RawMatch(
                line=service.line_of("security_opt"),
                matched_text=f"service: {service.name}",
                message=f"Service '{service.name}' does not set no-new-privileges:true.",
            )
        )
    return matches


@rule(
    "COMPOSE-SEC-008",
    COMPOSE,
    Severity.HIGH,
    "SELinux/AppArmor confinement disabled",
    cwe="CWE-693",
    message="Disabling the mandatory access control profile removes a container isolation layer.",
    fix="Remove `label:disable` / `apparmor:unconfined` or provide a tailored profile.",
)
def mac_profile_disabled(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    matches = []
    for service in _services(document):
        for normalized, option in _options(service):
            if normalized in DISABLED_MAC_PROFILES:
                matches.append(
                    RawMatch(
                        line=service.line_of("security_opt", option),
                        matched_text=option,
                        message=f"Service '{service.name}' sets {option}.",
                    )
                )
    return matches


@rule(
    "COMPOSE-SEC-009",
    COMPOSE,
    Severity.MEDIUM,
    "Writable root filesystem",
    cwe="CWE-732",
    message="read_only is explicitly disabled, so the container can modify its own filesystem.",
    fix="Set `read_only: true` and mount writable paths with tmpfs or volumes.",
)
def writable_root_filesystem(document: ComposeDocument, context: ScanContext) -> List[RawMatch]:
    return [
        RawMatch(
            line=service.line_of("read_only"),
            matched_text=f"read_only: {str(service.read_only).lower()}",
            message=f"Service '{service.name}' has a writable root filesystem.",
        )
        for service in _services(document)
        if "read_only" in service.lines and service.read_only is not True
    ]

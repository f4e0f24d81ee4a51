"""Project docker-compose YAML into typed service specs with line provenance."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import yaml

from ..errors import ParseError
from .kinds import DocumentKind

BOOL_FIELDS = ("privileged", "read_only")
STRING_FIELDS = ("network_mode", "pid", "ipc")
SET_FIELDS = ("cap_add", "cap_drop", "security_opt")
RECOGNIZED_FIELDS = frozenset(BOOL_FIELDS + STRING_FIELDS + SET_FIELDS + ("volumes",))


@dataclass(frozen=True)
class VolumeMount:
    """A single service volume entry, short or long syntax."""

    source: str
    target: str
    read_only: bool
    line: int
    raw: str


@dataclass(frozen=True)
class ServiceSpec:
    """The interpreted subset of one compose service definition."""

    name: str
    line: int
    privileged: Optional[bool] = None
    network_mode: Optional[str] = None
    pid: Optional[str] = None
    ipc: Optional[str] = None
    read_only: Optional[bool] = None
    cap_add: FrozenSet[str] = frozenset()
    cap_drop: FrozenSet[str] = frozenset()
    security_opt: FrozenSet[str] = frozenset()
    volumes: Tuple[VolumeMount, ...] = ()
    lines: Mapping[str, int] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def line_of(self, key: str, item: Optional[str] = None) -> int:
        """Return the line of ``key`` (or one of its list items), else the service line."""

        if item is not None and f"{key}:{item}" in self.lines:
            return self.lines[f"{key}:{item}"]
        return self.lines.get(key, self.line)


@dataclass(frozen=True)
class ComposeDocument:
    """Parsed compose file, keyed by service name."""

    path: str
    services: Mapping[str, ServiceSpec]

    kind = DocumentKind.COMPOSE


def parse(text: str, path: str = "docker-compose.yml") -> ComposeDocument:
    """Parse compose ``text``; malformed YAML or structure raises :class:`ParseError`."""

    try:
        loader = yaml.SafeLoader(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML: {exc}") from exc
    try:
        root = loader.get_single_node()
        if root is None:
            return ComposeDocument(path=path, services={})
        if not isinstance(root, yaml.MappingNode):
            raise ParseError("top-level document is not a mapping", line=_line(root))
        services_node = _lookup(root, "services")
        services: Dict[str, ServiceSpec] = {}
        if services_node is not None and not _is_null(services_node):
            if not isinstance(services_node, yaml.MappingNode):
                raise ParseError("'services' must be a mapping", line=_line(services_node))
            for key_node, value_node in services_node.value:
                name = str(loader.construct_object(key_node, deep=True))
                services[name] = _build_service(loader, name, key_node, value_node)
        return ComposeDocument(path=path, services=services)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark or exc.context_mark
        line = mark.line + 1 if mark is not None else None
        raise ParseError(f"invalid YAML: {exc.problem or exc.context}", line=line) from exc
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML: {exc}") from exc
    finally:
        loader.dispose()


# ----------------------------------------------------------------------
# Node helpers
# ----------------------------------------------------------------------
def _line(node: yaml.Node) -> int:
    return node.start_mark.line + 1


def _is_null(node: yaml.Node) -> bool:
    return isinstance(node, yaml.ScalarNode) and node.tag == "tag:yaml.org,2002:null"


def _lookup(mapping: yaml.MappingNode, key: str) -> Optional[yaml.Node]:
    for key_node, value_node in mapping.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            return value_node
    return None


def _build_service(
    loader: yaml.SafeLoader,
    name: str,
    key_node: yaml.Node,
    node: yaml.Node,
) -> ServiceSpec:
    if _is_null(node):
        return ServiceSpec(name=name, line=_line(key_node))
    if not isinstance(node, yaml.MappingNode):
        raise ParseError(f"service '{name}' must be a mapping", line=_line(node))
    loader.flatten_mapping(node)

    values: Dict[str, Any] = {}
    lines: Dict[str, int] = {}
    extras: Dict[str, Any] = {}
    for field_key_node, value_node in node.value:
        key = str(loader.construct_object(field_key_node, deep=True))
        lines[key] = _line(field_key_node)
        if key not in RECOGNIZED_FIELDS:
            extras[key] = loader.construct_object(value_node, deep=True)
            continue
        if key in BOOL_FIELDS:
            values[key] = _as_bool(loader.construct_object(value_node, deep=True))
        elif key in STRING_FIELDS:
            value = loader.construct_object(value_node, deep=True)
            values[key] = None if value is None else str(value)
        elif key in SET_FIELDS:
            items = _scalar_items(loader, value_node)
            for item, item_line in items:
                lines[f"{key}:{item}"] = item_line
            values[key] = frozenset(item for item, _ in items)
        else:
            values[key] = _volumes(loader, value_node)

    return ServiceSpec(name=name, line=_line(key_node), lines=lines, extras=extras, **values)


def _as_bool(value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    return None


def _scalar_items(loader: yaml.SafeLoader, node: yaml.Node) -> List[Tuple[str, int]]:
    if isinstance(node, yaml.SequenceNode):
        return [
            (str(loader.construct_object(item, deep=True)), _line(item))
            for item in node.value
            if isinstance(item, yaml.ScalarNode) and not _is_null(item)
        ]
    if isinstance(node, yaml.ScalarNode) and not _is_null(node):
        return [(str(loader.construct_object(node, deep=True)), _line(node))]
    return []


def _volumes(loader: yaml.SafeLoader, node: yaml.Node) -> Tuple[VolumeMount, ...]:
    if not isinstance(node, yaml.SequenceNode):
        return ()
    mounts: List[VolumeMount] = []
    for item in node.value:
        value = loader.construct_object(item, deep=True)
        if isinstance(value, str):
            mounts.append(_short_volume(value, _line(item)))
        elif isinstance(value, dict):
            source = str(value.get("source") or "")
            target = str(value.get("target") or "")
            mounts.append(
                VolumeMount(
                    source=source,
                    target=target,
                    read_only=_as_bool(value.get("read_only")) is True,
                    line=_line(item),
                    raw=f"{source}:{target}" if source else target,
                )
            )
    return tuple(mounts)


def _short_volume(value: str, line: int) -> VolumeMount:
    parts = value.split(":")
    mode = ""
    if len(parts) >= 3:
        source, target, mode = parts[0], parts[1], parts[2]
    elif len(parts) == 2:
        source, target = parts
    else:
        source, target = "", parts[0]
    read_only = "ro" in mode.split(",")
    return VolumeMount(source=source, target=target, read_only=read_only, line=line, raw=value)

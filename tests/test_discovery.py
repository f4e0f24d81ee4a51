from pathlib import Path

from dockguard.parsers import DocumentKind, detect_kind
from dockguard.utils import iter_manifest_files


def test_iter_manifest_files_finds_dockerfiles_and_compose(tmp_path):
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / "Dockerfile").write_text("FROM alpine:3.19\n", encoding="utf-8")
    (tmp_path / "worker.dockerfile").write_text("FROM alpine:3.19\n", encoding="utf-8")
    (tmp_path / "compose.yaml").write_text("services: {}\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("docs\n", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "Dockerfile").write_text("FROM node\n", encoding="utf-8")

    found = [path.relative_to(tmp_path).as_posix() for path in iter_manifest_files([str(tmp_path)])]

    assert found == ["api/Dockerfile", "compose.yaml", "worker.dockerfile"]


def test_explicit_file_is_yielded_even_with_unusual_name(tmp_path):
    manifest = tmp_path / "build.txt"
    manifest.write_text("FROM alpine:3.19\n", encoding="utf-8")

    assert list(iter_manifest_files([str(manifest)])) == [manifest]


def test_detect_kind_by_file_name():
    assert detect_kind("deploy/docker-compose.prod.yml") is DocumentKind.COMPOSE
    assert detect_kind(Path("compose.yaml")) is DocumentKind.COMPOSE
    assert detect_kind("services/api/Dockerfile") is DocumentKind.DOCKERFILE


def test_missing_root_is_skipped_with_warning(tmp_path, caplog):
    (tmp_path / "Dockerfile").write_text("FROM alpine:3.19\n", encoding="utf-8")

    with caplog.at_level("WARNING", logger="dockguard.utils.discovery"):
        found = list(iter_manifest_files([str(tmp_path / "missing"), str(tmp_path)]))

    assert found == [tmp_path / "Dockerfile"]
    assert "missing" in caplog.text

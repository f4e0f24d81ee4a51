import json
from pathlib import Path

from dockguard import cli

VULNERABLE_DOCKERFILE = "FROM ubuntu:22.04\nENV API_KEY=abc123\nCMD npm start\n"
SAFE_DOCKERFILE = 'FROM python:3.12-slim\nUSER 1000\nCMD ["python", "-m", "app"]\n'


def test_cli_generates_json_report(tmp_path, capsys):
    project = tmp_path / "project"
    (project / "api").mkdir(parents=True)
    (project / "api" / "Dockerfile").write_text(VULNERABLE_DOCKERFILE, encoding="utf-8")
    (project / "docker-compose.yml").write_text(
        "services:\n  api:\n    build: ./api\n    privileged: true\n", encoding="utf-8"
    )
    output_path = tmp_path / "out" / "audit.json"

    exit_code = cli.main([str(project), "--format", "json", "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Audit Summary" in captured.err
    assert exit_code == 1
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["summary"]["critical"] == 2
    files = {Path(finding["file"]).name for finding in data["findings"]}
    assert files == {"Dockerfile", "docker-compose.yml"}


def test_cli_passes_on_clean_dockerfile(tmp_path, capsys):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text(SAFE_DOCKERFILE, encoding="utf-8")

    exit_code = cli.main([str(dockerfile)])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.startswith("# Docker Security & Optimization Audit")
    assert "No findings." in captured.out


def test_cli_fail_on_threshold_and_suppression(tmp_path, capsys):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM node:latest\nUSER node\nCMD [\"node\"]\n", encoding="utf-8")

    assert cli.main([str(dockerfile)]) == 0
    assert cli.main([str(dockerfile), "--fail-on", "medium"]) == 1
    assert cli.main([str(dockerfile), "--fail-on", "medium", "--suppress", "OPT-001,OPT-002"]) == 0
    capsys.readouterr()


def test_cli_reports_bad_config(tmp_path, capsys):
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("workers: -1\n", encoding="utf-8")

    exit_code = cli.main([str(tmp_path), "--config", str(config_path)])

    assert exit_code == 2
    assert "workers" in capsys.readouterr().err


def test_cli_lists_rules(capsys):
    assert cli.main(["--list-rules"]) == 0

    output = capsys.readouterr().out
    assert "SEC-001" in output
    assert "COMPOSE-SEC-009" in output
    assert "OPT-013" in output


def test_cli_rejects_missing_paths(tmp_path, capsys):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text(SAFE_DOCKERFILE, encoding="utf-8")

    exit_code = cli.main([str(dockerfile), str(tmp_path / "Dockerfle")])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "Dockerfle" in captured.err
    assert captured.out == ""

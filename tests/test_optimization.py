from dockguard.parsers import dockerfile
from dockguard.rules import ScanContext, default_registry
from dockguard.severity import Severity


def run_rule(rule_id, text):
    rule = default_registry().get(rule_id)
    return list(rule.evaluate(dockerfile.parse(text), ScanContext()))


def test_latest_tag_on_first_line():
    matches = run_rule("OPT-001", "FROM node:latest\nCMD [\"node\"]\n")

    assert [match.line for match in matches] == [1]
    assert default_registry().get("OPT-001").severity is Severity.MEDIUM


def test_pinned_scratch_and_stage_references_are_not_flagged():
    text = (
        "FROM golang:1.22 AS build\n"
        "FROM node@sha256:0123abcd\n"
        "FROM scratch\n"
        "FROM build\n"
        "FROM ${BASE_IMAGE}\n"
        "FROM --platform=linux/amd64 python\n"
    )

    assert [match.line for match in run_rule("OPT-001", text)] == [6]


def test_bloated_final_base_image():
    assert len(run_rule("OPT-002", "FROM ubuntu:22.04\n")) == 1
    assert run_rule("OPT-002", "FROM python:3.12-slim\n") == []
    assert run_rule("OPT-002", "FROM node:20-alpine\n") == []
    multi_stage = "FROM golang:1.22 AS build\nFROM gcr.io/distroless/static-debian12\n"
    assert run_rule("OPT-002", multi_stage) == []


def test_broad_copy_before_dependency_install():
    busted = "FROM node:20-slim\nWORKDIR /app\nCOPY . .\nRUN npm ci\n"
    ordered = "FROM node:20-slim\nWORKDIR /app\nCOPY package*.json ./\nRUN npm ci\nCOPY . .\n"

    assert [match.line for match in run_rule("OPT-003", busted)] == [3]
    assert run_rule("OPT-003", ordered) == []


def test_apt_install_hygiene():
    sloppy = "FROM debian:12\nRUN apt-get update && apt-get install -y curl\n"
    tidy = (
        "FROM debian:12\n"
        "RUN apt-get update && apt-get install -y --no-install-recommends curl \\\n"
        "    && rm -rf /var/lib/apt/lists/*\n"
    )

    assert len(run_rule("OPT-004", sloppy)) == 1
    assert len(run_rule("OPT-005", sloppy)) == 1
    assert run_rule("OPT-004", tidy) == []
    assert run_rule("OPT-005", tidy) == []


def test_pip_and_apk_caches():
    assert len(run_rule("OPT-006", "FROM python:3.12-slim\nRUN pip install flask\n")) == 1
    assert run_rule("OPT-006", "FROM python:3.12-slim\nRUN pip install --no-cache-dir flask\n") == []
    assert len(run_rule("OPT-007", "FROM alpine:3.19\nRUN apk add curl\n")) == 1
    assert run_rule("OPT-007", "FROM alpine:3.19\nRUN apk add --no-cache curl\n") == []


def test_consecutive_runs_reported_after_the_first():
    text = "FROM alpine:3.19\nRUN echo a\nRUN echo b\nRUN echo c\nWORKDIR /app\nRUN echo d\n"

    assert [match.line for match in run_rule("OPT-008", text)] == [3, 4]


def test_add_for_local_files():
    matches = run_rule("OPT-009", "FROM alpine:3.19\nADD app.py /app/\nADD rootfs.tar.gz /\n")

    assert [match.line for match in matches] == [2]
    assert matches[0].suggested_fix == "Use COPY app.py /app/"


def test_healthcheck_only_required_for_exposed_services():
    assert [m.line for m in run_rule("OPT-010", "FROM nginx:1.25\nEXPOSE 80\n")] == [2]
    assert run_rule("OPT-010", "FROM nginx:1.25\nEXPOSE 80\nHEALTHCHECK CMD curl -f http://localhost/\n") == []
    assert run_rule("OPT-010", "FROM alpine:3.19\nCMD [\"true\"]\n") == []


def test_single_stage_build_toolchain():
    single = "FROM python:3.12\nRUN apt-get install -y gcc libpq-dev\n"
    multi = "FROM python:3.12 AS build\nRUN apt-get install -y gcc\nFROM python:3.12-slim\n"

    matches = run_rule("OPT-011", single)

    assert len(matches) == 1
    assert "gcc" in matches[0].message
    assert run_rule("OPT-011", multi) == []


def test_distribution_upgrade_and_run_cd():
    assert len(run_rule("OPT-012", "FROM debian:12\nRUN apt-get update && apt-get upgrade -y\n")) == 1
    assert len(run_rule("OPT-013", "FROM alpine:3.19\nRUN cd /app && make\n")) == 1
    assert run_rule("OPT-013", "FROM alpine:3.19\nWORKDIR /app\nRUN make\n") == []

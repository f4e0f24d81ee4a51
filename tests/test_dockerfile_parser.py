import pytest

from dockguard.errors import ParseError
from dockguard.parsers import DocumentKind, detect_kind, dockerfile


def test_parse_tracks_lines_and_stages():
    text = "\n".join(
        [
            "FROM python:3.12-slim AS build",
            "# install dependencies",
            "",
            "RUN pip install \\",
            "    --no-cache-dir \\",
            "    flask",
            "FROM python:3.12-slim",
            "COPY --from=build /app /app",
        ]
    )

    document = dockerfile.parse(text, path="Dockerfile")

    assert [inst.keyword for inst in document.instructions] == ["FROM", "RUN", "FROM", "COPY"]
    assert [inst.line for inst in document.instructions] == [1, 4, 7, 8]
    assert [inst.stage_index for inst in document.instructions] == [0, 0, 1, 1]
    assert document.instructions[0].arguments == "python:3.12-slim AS build"
    assert document.instructions[1].arguments == "pip install --no-cache-dir flask"
    assert document.stage_count == 2
    assert document.final_stage_index == 1
    assert document.stage_names == {"build": 0}
    assert document.kind is DocumentKind.DOCKERFILE


def test_comment_lines_inside_continuation_are_skipped():
    text = "FROM debian:12\nRUN apt-get update && \\\n    # install curl\n    apt-get install -y curl\n"

    document = dockerfile.parse(text)

    run = document.instructions[1]
    assert run.line == 2
    assert run.arguments == "apt-get update && apt-get install -y curl"


def test_trailing_comments_respect_quotes():
    text = 'FROM alpine:3.19\nRUN echo "a # b" # note\nRUN echo ${VAR#prefix}\n'

    document = dockerfile.parse(text)

    assert document.instructions[1].arguments == 'echo "a # b"'
    assert document.instructions[2].arguments == "echo ${VAR#prefix}"


def test_unknown_and_lowercase_instructions_are_kept():
    document = dockerfile.parse("from alpine:3.19\nrun echo hi\nFROBNICATE now\n")

    assert [inst.keyword for inst in document.instructions] == ["FROM", "RUN", "FROBNICATE"]
    assert document.instructions[2].arguments == "now"


def test_dangling_continuation_raises_parse_error():
    with pytest.raises(ParseError) as excinfo:
        dockerfile.parse("FROM alpine:3.19\nRUN echo \\\n")

    assert excinfo.value.line == 2


def test_heredoc_body_is_opaque_argument_text():
    text = "FROM alpine:3.19\nRUN <<EOF\necho hi # not a comment\nEOF\nCMD [\"sh\"]\n"

    document = dockerfile.parse(text)

    run = document.instructions[1]
    assert run.arguments == "<<EOF\necho hi # not a comment\nEOF"
    assert document.instructions[2].keyword == "CMD"
    assert document.instructions[2].line == 5


def test_unterminated_heredoc_raises_parse_error():
    with pytest.raises(ParseError):
        dockerfile.parse("FROM alpine:3.19\nRUN <<EOF\necho hi\n")


def test_quoted_and_arithmetic_shifts_are_not_heredocs():
    text = 'FROM alpine:3.19\nRUN echo "a<<b"\nRUN echo $((1<<n))\nUSER app\nCMD ["sh"]\n'

    document = dockerfile.parse(text)

    assert [inst.keyword for inst in document.instructions] == ["FROM", "RUN", "RUN", "USER", "CMD"]
    assert document.instructions[1].arguments == 'echo "a<<b"'
    assert document.instructions[2].arguments == "echo $((1<<n))"


def test_heredoc_after_command_word_is_detected():
    text = "FROM alpine:3.19\nRUN cat <<-'CONF' > /etc/app.conf\nkey=value\nCONF\nUSER app\n"

    document = dockerfile.parse(text)

    assert document.instructions[1].arguments == "cat <<-'CONF' > /etc/app.conf\nkey=value\nCONF"
    assert document.instructions[2].keyword == "USER"


def test_trailing_comment_before_continuation_keeps_next_line():
    text = "FROM alpine:3.19\nRUN apk add curl # fetch tools \\\n    && rm -rf /tmp/*\n"

    document = dockerfile.parse(text)

    assert document.instructions[1].arguments == "apk add curl && rm -rf /tmp/*"


def test_escape_directive_switches_continuation_character():
    text = "# escape=`\nFROM mcr.microsoft.com/windows/servercore:ltsc2022\nRUN dir `\n    C:\\\n"

    document = dockerfile.parse(text)

    assert document.instructions[1].arguments == "dir C:\\"
    assert document.instructions[1].line == 3


def test_documents_without_from():
    assert dockerfile.parse("").stage_count == 0
    document = dockerfile.parse("RUN echo hi\n")
    assert document.stage_count == 1
    assert document.instructions[0].stage_index == 0


def test_detect_kind_by_file_name():
    assert detect_kind("deploy/docker-compose.prod.yml") is DocumentKind.COMPOSE
    assert detect_kind("compose.yaml") is DocumentKind.COMPOSE
    assert detect_kind("services/api/Dockerfile") is DocumentKind.DOCKERFILE
    assert detect_kind("build/app.Dockerfile") is DocumentKind.DOCKERFILE

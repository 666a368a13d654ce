"""Tests for the registry emitter."""

from __future__ import annotations

import ast
import os
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from extracodec import emitter as emitter_module
from extracodec.emitter import (
    HEADER_LINE,
    ArtifactWriteError,
    RegistryEmitter,
    instance_name_for,
    python_string_literal,
)
from extracodec.models import (
    AggregationResult,
    CandidateDeclaration,
    FileFindings,
    OverrideBinding,
    SourceFile,
)

STAMP = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _result(*candidates: CandidateDeclaration, serializer=None, deserializer=None) -> AggregationResult:
    source = SourceFile(path=Path("app/x.py"), rel_path="app/x.py", module="app.x")
    return AggregationResult().absorb(
        FileFindings(
            source=source,
            candidates=list(candidates),
            serializer=serializer,
            deserializer=deserializer,
        )
    )


def test_render_sorts_entries_and_emits_fallbacks() -> None:
    result = _result(
        CandidateDeclaration("Gamma", "app.pages.gamma"),
        CandidateDeclaration("Alpha", "app.pages.alpha"),
        CandidateDeclaration("Beta", "app.extras", custom_key="B"),
    )

    text = RegistryEmitter().render(result, generated_at=STAMP)

    assert text.startswith("# ****")
    assert HEADER_LINE in text
    assert "# Generated: 2024-01-02T03:04:05Z" in text
    assert "# Author: extracodec" in text
    assert "import app.extras\nimport app.pages.alpha\nimport app.pages.gamma\n" in text
    alpha = text.index('"Alpha": lambda data: app.pages.alpha.Alpha.from_json(data),')
    beta = text.index('"B": lambda data: app.extras.Beta.from_json(data),')
    gamma = text.index('"Gamma": lambda data: app.pages.gamma.Gamma.from_json(data),')
    assert alpha < beta < gamma
    assert "# 3 classes registered:" in text
    assert "class RouterExtraCodec:" in text
    assert "generated_router_extra_codec = RouterExtraCodec(generated_router_extra_factories)" in text
    assert "return _DefaultEncoder()" in text
    assert "return _DefaultDecoder()" in text
    assert "class _DefaultEncoder:" in text
    assert "class _DefaultDecoder:" in text
    assert text.endswith("return value\n")
    compile(text, "router_extra_codec.py", "exec")


def test_render_uses_overrides_and_imports_their_modules_once() -> None:
    result = _result(
        CandidateDeclaration("Alpha", "app.alpha"),
        serializer=OverrideBinding("MyEncoder", "app.router"),
        deserializer=OverrideBinding("MyDecoder", "app.router"),
    )

    text = RegistryEmitter().render(result, codec_class_name="GoCodec", generated_at=STAMP)

    assert text.count("import app.router\n") == 1
    assert "return app.router.MyEncoder(self._factories)" in text
    assert "return app.router.MyDecoder(self._factories)" in text
    assert "_DefaultEncoder" not in text
    assert "_DefaultDecoder" not in text
    assert "generated_go_codec = GoCodec(generated_router_extra_factories)" in text
    compile(text, "router_extra_codec.py", "exec")


def test_render_skips_override_import_already_present() -> None:
    result = _result(
        CandidateDeclaration("Alpha", "app.alpha"),
        serializer=OverrideBinding("AlphaEncoder", "app.alpha"),
    )

    text = RegistryEmitter().render(result, generated_at=STAMP)

    assert text.count("import app.alpha\n") == 1
    assert "class _DefaultEncoder:" not in text
    assert "class _DefaultDecoder:" in text


def test_render_is_byte_stable() -> None:
    first = _result(CandidateDeclaration("B", "m.b"), CandidateDeclaration("A", "m.a"))
    second = _result(CandidateDeclaration("A", "m.a"), CandidateDeclaration("B", "m.b"))
    emitter = RegistryEmitter()

    assert emitter.render(first, generated_at=STAMP) == emitter.render(second, generated_at=STAMP)


def test_render_refuses_empty_result() -> None:
    with pytest.raises(ValueError):
        RegistryEmitter().render(AggregationResult(), generated_at=STAMP)


def test_render_warns_on_duplicate_registry_keys(caplog) -> None:
    result = _result(
        CandidateDeclaration("Alpha", "app.alpha", custom_key="Same"),
        CandidateDeclaration("Beta", "app.beta", custom_key="Same"),
    )

    text = RegistryEmitter().render(result, generated_at=STAMP)

    assert text.count('"Same": ') == 2
    assert "Registry key 'Same' is used by 2 classes" in caplog.text


def test_render_escapes_registry_keys() -> None:
    result = _result(CandidateDeclaration("Alpha", "app.alpha", custom_key='quote"key'))

    text = RegistryEmitter().render(result, generated_at=STAMP)

    assert '"quote\\"key": ' in text
    compile(text, "router_extra_codec.py", "exec")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("RouterExtraCodec", "generated_router_extra_codec"),
        ("HTTPCodec", "generated_http_codec"),
        ("codec", "generated_codec"),
    ],
)
def test_instance_name_for(name: str, expected: str) -> None:
    assert instance_name_for(name) == expected


def test_write_creates_folder_and_skips_identical_content(tmp_path: Path) -> None:
    target = tmp_path / "generated" / "router" / "codec.py"
    emitter = RegistryEmitter()

    assert emitter.write(target, "x = 1\n") is True
    assert target.read_text(encoding="utf-8") == "x = 1\n"
    assert emitter.write(target, "x = 1\n") is False
    assert emitter.write(target, "x = 2\n") is True
    assert target.read_text(encoding="utf-8") == "x = 2\n"


def test_write_failure_leaves_existing_artifact_intact(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "codec.py"
    target.write_text("previous = True\n", encoding="utf-8")

    def _fail_replace(src, dst):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(emitter_module.os, "replace", _fail_replace)

    with pytest.raises(ArtifactWriteError):
        RegistryEmitter().write(target, "previous = False\n")

    assert target.read_text(encoding="utf-8") == "previous = True\n"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["codec.py"]


def test_write_failure_when_folder_is_a_file(tmp_path: Path) -> None:
    (tmp_path / "blocked").write_text("not a folder\n", encoding="utf-8")

    with pytest.raises(ArtifactWriteError):
        RegistryEmitter().write(tmp_path / "blocked" / "codec.py", "x = 1\n")


def test_custom_templates_dir_takes_precedence(tmp_path: Path) -> None:
    (tmp_path / "codec.py.j2").write_text("# custom {{ codec_class_name }}\n{{ header_line }}\n", encoding="utf-8")

    text = RegistryEmitter(templates_dir=tmp_path).render(
        _result(CandidateDeclaration("Alpha", "app.alpha")), generated_at=STAMP
    )

    assert text == f"# custom RouterExtraCodec\n{HEADER_LINE}\n"


def _registry_keys(text: str) -> list:
    for node in ast.parse(text).body:
        if isinstance(node, ast.AnnAssign) and node.target.id == "generated_router_extra_factories":
            return [key.value for key in node.value.keys]
    raise AssertionError("factory registry not found")


def test_render_keeps_non_bmp_registry_keys_intact() -> None:
    result = _result(
        CandidateDeclaration("Alpha", "app.alpha", custom_key="page\U0001F600"),
        CandidateDeclaration("Beta", "app.beta", custom_key="tab\there"),
    )

    text = RegistryEmitter().render(result, generated_at=STAMP)

    assert _registry_keys(text) == ["page\U0001F600", "tab\there"]


@pytest.mark.parametrize("value", ["Alpha", 'quote"key', "page\U0001F600", "line\nbreak", "lone\ud800"])
def test_python_string_literal_evaluates_back(value: str) -> None:
    assert ast.literal_eval(python_string_literal(value)) == value


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
@pytest.mark.parametrize("mode", [0o644, 0o640, 0o755])
def test_write_preserves_existing_file_mode(tmp_path: Path, mode: int) -> None:
    target = tmp_path / "codec.py"
    target.write_text("old = True\n", encoding="utf-8")
    target.chmod(mode)

    assert RegistryEmitter().write(target, "new = True\n") is True

    assert stat.S_IMODE(target.stat().st_mode) == mode


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_write_new_file_honours_umask(tmp_path: Path) -> None:
    previous = os.umask(0o022)
    try:
        target = tmp_path / "generated" / "codec.py"
        RegistryEmitter().write(target, "x = 1\n")
    finally:
        os.umask(previous)

    assert stat.S_IMODE(target.stat().st_mode) == 0o644

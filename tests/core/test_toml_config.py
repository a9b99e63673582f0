from __future__ import annotations

import pytest

from micro_quiz.core.config import (
    TomlConfigError,
    load_toml,
    merge_defaults,
    write_toml_template,
)


def test_load_toml_reads_tables(tmp_path):
    path = tmp_path / "quiz.toml"
    path.write_text('title = "Rivers"\n[[questions]]\ntype = "true-false"\n')

    data = load_toml(path)

    assert data["title"] == "Rivers"
    assert data["questions"] == [{"type": "true-false"}]


def test_load_toml_missing_and_invalid(tmp_path):
    with pytest.raises(TomlConfigError, match="not found"):
        load_toml(tmp_path / "missing.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("title = ", encoding="utf-8")
    with pytest.raises(TomlConfigError, match="Failed to parse"):
        load_toml(broken)


def test_merge_defaults_overrides_nested_values():
    base = {"session": {"recent_limit": 5, "show_explanations": True}}

    merge_defaults(base, {"session": {"recent_limit": 10}})

    assert base == {"session": {"recent_limit": 10, "show_explanations": True}}


def test_merge_defaults_rejects_unknown_keys_with_dotted_path():
    base = {"session": {"recent_limit": 5}}

    with pytest.raises(TomlConfigError, match="'session.limit'"):
        merge_defaults(base, {"session": {"limit": 1}})


def test_merge_defaults_requires_tables_for_sections():
    with pytest.raises(TomlConfigError, match="Expected table for 'session'"):
        merge_defaults({"session": {"recent_limit": 5}}, {"session": 3})


def test_write_toml_template_refuses_to_clobber(tmp_path):
    target = tmp_path / "nested" / "microquiz.toml"

    write_toml_template(target, template="[session]\n")
    assert target.read_text(encoding="utf-8") == "[session]\n"

    with pytest.raises(TomlConfigError, match="already exists"):
        write_toml_template(target, template="[paths]\n")

    write_toml_template(target, template="[paths]\n", overwrite=True)
    assert target.read_text(encoding="utf-8") == "[paths]\n"

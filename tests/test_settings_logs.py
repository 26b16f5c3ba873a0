import logging

import pytest

from atomic_reflector import MemberScope, ReflectorSettings, configure_logging
from atomic_reflector.core import (
    AmbiguousMethodError,
    ErrorKind,
    Logs,
    LogKind,
    NO_VAL,
    TypeNotFoundError,
    indent,
)
from atomic_reflector.core.sentinels import has_value

_VARS = (
    "ATOMIC_REFLECTOR_METHOD_SCOPE",
    "ATOMIC_REFLECTOR_JSON_INDENT",
    "ATOMIC_REFLECTOR_MAX_DEPTH",
    "ATOMIC_REFLECTOR_LOG_LEVEL",
    "ATOMIC_REFLECTOR_TYPE_NAME_MATCH_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Registered first so teardown removes whatever load_dotenv adds.
    for name in _VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults():
    settings = ReflectorSettings()
    assert settings.type_name_match_level == 1
    assert settings.method_name_match_level == 1
    assert settings.parameters_match_level == 0
    assert settings.member_scope == MemberScope.DEFAULT
    assert settings.method_scope == MemberScope.METHODS
    assert settings.json_indent == 2
    assert settings.max_depth == 64


def test_from_env_parses_values(monkeypatch):
    monkeypatch.setenv("ATOMIC_REFLECTOR_METHOD_SCOPE", "public, static")
    monkeypatch.setenv("ATOMIC_REFLECTOR_JSON_INDENT", "none")
    monkeypatch.setenv("ATOMIC_REFLECTOR_TYPE_NAME_MATCH_LEVEL", "6")

    settings = ReflectorSettings.from_env(load_env_file=False)
    assert settings.method_scope == MemberScope.PUBLIC | MemberScope.STATIC
    assert settings.json_indent is None
    assert settings.type_name_match_level == 6


def test_invalid_values_keep_defaults(monkeypatch, caplog):
    monkeypatch.setenv("ATOMIC_REFLECTOR_MAX_DEPTH", "deep")
    monkeypatch.setenv("ATOMIC_REFLECTOR_LOG_LEVEL", "chatty")

    with caplog.at_level(logging.WARNING, logger="atomic_reflector"):
        settings = ReflectorSettings.from_env(load_env_file=False)

    assert settings.max_depth == 64
    assert settings.log_level is None
    assert "Ignoring ATOMIC_REFLECTOR_MAX_DEPTH='deep'" in caplog.text


def test_dotenv_file_is_loaded(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("ATOMIC_REFLECTOR_MAX_DEPTH=7\n")
    assert ReflectorSettings.from_env(dotenv_path=str(env_file)).max_depth == 7


def test_configure_logging_sets_package_level():
    package_logger = logging.getLogger("atomic_reflector")
    previous = package_logger.level
    try:
        configure_logging("DEBUG")
        assert package_logger.level == logging.DEBUG
        ReflectorSettings(log_level="WARNING").apply_logging()
        assert package_logger.level == logging.WARNING
    finally:
        package_logger.setLevel(previous)


def test_member_scope():
    assert MemberScope.parse("PUBLIC|INSTANCE") == MemberScope.DEFAULT
    assert MemberScope.parse("public + instance + static") == MemberScope.METHODS
    with pytest.raises(ValueError):
        MemberScope.parse("PUBLIC|EVERYTHING")

    assert MemberScope.DEFAULT.admits(public=True, static=False)
    assert not MemberScope.DEFAULT.admits(public=True, static=True)
    assert not MemberScope.DEFAULT.admits(public=False, static=False)
    assert MemberScope.ALL.admits(public=False, static=True)


def test_logs_render_as_indented_tree():
    nested = Logs().success("Field 'a' set.").error("Field 'b' failed.")
    logs = Logs().info("Populating 'Thing'").extend(nested, depth_offset=1)

    assert str(logs) == (
        "[Info] Populating 'Thing'\n"
        "  [Success] Field 'a' set.\n"
        "  [Error] Field 'b' failed."
    )
    assert logs.has_errors
    assert len(logs) == 3
    assert logs.entries[1].kind is LogKind.SUCCESS
    assert logs.to_list()[2] == {"depth": 1, "message": "Field 'b' failed.", "kind": "Error"}
    assert not Logs().warning("careful").has_errors


def test_indent_skips_blank_lines():
    assert indent("a\n\nb", 2) == "    a\n\n    b"


def test_exceptions_carry_kind_and_message():
    missing = TypeNotFoundError("Foo")
    assert missing.message == "Type 'Foo' not found."
    assert isinstance(missing, LookupError)
    assert missing.to_dict() == {"kind": "TypeNotFound", "message": "Type 'Foo' not found.", "depth": 0}

    ambiguous = AmbiguousMethodError("two", candidates=["a", "b"], depth=1)
    assert ambiguous.kind is ErrorKind.AMBIGUOUS_METHOD
    assert ambiguous.candidates == ["a", "b"]
    assert ambiguous.depth == 1


def test_no_value_sentinel():
    assert not NO_VAL
    assert not has_value(NO_VAL)
    assert has_value(None)

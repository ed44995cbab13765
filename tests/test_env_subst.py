"""Tests for environment variable substitution."""

import pytest

from bridge.env_subst import SubstitutionContext, is_valid_name, substitute
from bridge.exceptions import SubstitutionError


class TestSubstitute:
    """Tests for the substitute function."""

    def test_no_placeholders_is_identity(self):
        """Text without placeholders is returned unchanged."""
        for text in ["", "make test", "echo $HOME", "{} && ls", "a $ b { c }"]:
            assert substitute(text, True, {}, environ={}) == text

    def test_environment_value(self):
        """Test basic substitution from the environment."""
        env = {"BRIDGE_TEST_VAR": "hello"}
        assert substitute("${BRIDGE_TEST_VAR}", True, {}, environ=env) == "hello"

    def test_file_vars_value(self):
        """Test substitution from env file variables."""
        assert substitute("${FILE_VAR}", True, {"FILE_VAR": "from_file"}, environ={}) == "from_file"

    def test_environment_takes_priority(self):
        """Process environment beats env file variables."""
        result = substitute("${V}", True, {"V": "f"}, environ={"V": "p"})
        assert result == "p"

    def test_empty_environment_value_counts_as_set(self):
        """A variable set to an empty string is not missing."""
        assert substitute("[${V}]", True, {"V": "file"}, environ={"V": ""}) == "[]"

    def test_default_value(self):
        """Test fallback to the inline default."""
        assert substitute("${NOPE:-fallback}", True, {}, environ={}) == "fallback"

    def test_empty_default(self):
        """An empty default is allowed in strict mode."""
        assert substitute("pass=${PASS:-}", True, {}, environ={}) == "pass="

    def test_default_loses_to_file_vars(self):
        """File variables beat the inline default."""
        assert substitute("${V:-d}", True, {"V": "f"}, environ={}) == "f"

    def test_default_with_spaces_and_symbols(self):
        """Defaults run up to the closing brace."""
        assert substitute("${V:-a b/c:d}", True, {}, environ={}) == "a b/c:d"

    def test_escaped_placeholder(self):
        """Escaped placeholders are emitted literally."""
        assert substitute("$${LITERAL}", True, {}, environ={}) == "${LITERAL}"

    def test_escaped_placeholder_even_when_defined(self):
        """Escapes are not expanded even when the variable exists."""
        env = {"X": "expanded"}
        assert substitute("$${X}", True, {"X": "f"}, environ=env) == "${X}"
        assert substitute("$${X}", False, {}, environ=env) == "${X}"

    def test_escaped_mixed_with_real(self):
        """Escapes and real placeholders in one string."""
        env = {"USER": "admin"}
        result = substitute("${USER} $${HOME} ${USER}", True, {}, environ=env)
        assert result == "admin ${HOME} admin"

    def test_multiple_vars(self):
        """Test several placeholders in one string."""
        env = {"BRIDGE_A": "one", "BRIDGE_B": "two"}
        assert substitute("${BRIDGE_A} and ${BRIDGE_B}", True, {}, environ=env) == "one and two"

    def test_wrapper_placeholder_untouched(self):
        """The wrapper command placeholder is plain text to the engine."""
        env = {"BRIDGE_USER": "admin"}
        assert substitute("echo ${BRIDGE_USER} && {}", True, {}, environ=env) == "echo admin && {}"

    def test_invalid_names_left_literal(self):
        """Sequences that do not match the name grammar are not placeholders."""
        text = "${1ABC} ${A-B} ${} ${ X }"
        assert substitute(text, True, {}, environ={}) == text

    def test_values_are_not_rescanned(self):
        """A substituted value containing a placeholder is not expanded again."""
        env = {"A": "${B}", "B": "nope"}
        assert substitute("${A}", True, {}, environ=env) == "${B}"

    def test_strict_missing(self):
        """Strict mode raises for unresolved variables."""
        with pytest.raises(SubstitutionError) as exc_info:
            substitute("${BRIDGE_MISSING_VAR_12345}", True, {}, environ={})
        assert "BRIDGE_MISSING_VAR_12345" in str(exc_info.value)

    def test_strict_missing_reports_all(self):
        """Every missing variable is named in one error."""
        with pytest.raises(SubstitutionError) as exc_info:
            substitute("${A}${B}", True, {}, environ={})
        message = str(exc_info.value)
        assert "A" in message and "B" in message
        assert exc_info.value.missing == ["A", "B"]

    def test_strict_missing_deduplicated(self):
        """A variable used twice is reported once."""
        with pytest.raises(SubstitutionError) as exc_info:
            substitute("${A} ${B} ${A}", True, {}, environ={})
        assert exc_info.value.missing == ["A", "B"]
        assert exc_info.value.context == {"missing": ["A", "B"]}

    def test_non_strict_missing(self):
        """Non-strict mode substitutes an empty string."""
        assert substitute("x${BRIDGE_MISSING_VAR_12345}y", False, {}, environ={}) == "xy"

    def test_uses_process_environment_by_default(self, monkeypatch):
        """Without an explicit environ, os.environ is consulted."""
        monkeypatch.setenv("BRIDGE_PROCESS_VAR", "from_process")
        assert substitute("${BRIDGE_PROCESS_VAR}", True, {"BRIDGE_PROCESS_VAR": "f"}) == "from_process"

    def test_marker_collision(self):
        """Input containing the internal escape marker survives unchanged."""
        text = "a\x00ESC\x00b $${X}"
        assert substitute(text, True, {}, environ={}) == "a\x00ESC\x00b ${X}"


class TestSubstitutionContext:
    """Tests for the layered lookup."""

    def test_lookup_order(self):
        """Environment, then file variables, then default."""
        ctx = SubstitutionContext({"A": "file", "B": "file"}, environ={"A": "env"})
        assert ctx.lookup("A") == "env"
        assert ctx.lookup("B") == "file"
        assert ctx.lookup("C", "default") == "default"
        assert ctx.lookup("C") is None


def test_is_valid_name():
    """Test the variable name grammar."""
    assert is_valid_name("KEY")
    assert is_valid_name("_KEY")
    assert is_valid_name("KEY_123")
    assert is_valid_name("MY_VAR_NAME")
    assert not is_valid_name("")
    assert not is_valid_name("123KEY")
    assert not is_valid_name("KEY-NAME")
    assert not is_valid_name("key.name")

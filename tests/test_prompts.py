"""
Tests for prompt resolution against the session store.
"""

from unittest.mock import patch

import pytest

from lxcbootstrap.errors import RequiredValueMissing
from lxcbootstrap.prompts import ClickPromptSource, ScriptedPromptSource, parse_yes_no
from lxcbootstrap.storage import MemoryConfigStore


class TestResolve:
    """Tests for PromptSource.resolve."""

    def test_stored_value_is_not_asked_again(self):
        store = MemoryConfigStore({"APP_NAME": "demo"})
        prompts = ScriptedPromptSource(store, {"APP_NAME": "other"})

        assert prompts.resolve("APP_NAME") == "demo"
        assert prompts.elicited == []

    def test_answer_is_persisted(self):
        store = MemoryConfigStore()
        prompts = ScriptedPromptSource(store, {"APP_NAME": "demo"})

        assert prompts.resolve("APP_NAME") == "demo"
        assert store.get("APP_NAME") == "demo"

    def test_empty_answer_takes_default(self):
        store = MemoryConfigStore()
        prompts = ScriptedPromptSource(store)

        assert prompts.resolve("DB_CHOICE", "1") == "1"
        assert store.get("DB_CHOICE") == "1"

    def test_answer_is_stripped(self):
        prompts = ScriptedPromptSource(MemoryConfigStore(), {"APP_NAME": "  demo \n"})
        assert prompts.resolve("APP_NAME") == "demo"

    def test_secret_is_not_stripped(self):
        prompts = ScriptedPromptSource(MemoryConfigStore(), {"DB_PASSWORD": " spaced "})
        assert prompts.resolve("DB_PASSWORD", secret=True) == " spaced "

    def test_required_without_answer_raises(self):
        store = MemoryConfigStore()
        prompts = ScriptedPromptSource(store)

        with pytest.raises(RequiredValueMissing) as exc_info:
            prompts.resolve("APP_NAME")

        assert exc_info.value.key == "APP_NAME"
        assert store.get("APP_NAME") is None

    def test_optional_empty_answer_is_stored(self):
        """An empty optional answer counts as answered and is not asked again."""
        store = MemoryConfigStore()
        prompts = ScriptedPromptSource(store)

        assert prompts.resolve("GITHUB_TOKEN", required=False) == ""
        assert prompts.resolve("GITHUB_TOKEN", required=False) == ""
        assert prompts.elicited == ["GITHUB_TOKEN"]

    def test_validator_runs_before_store(self):
        store = MemoryConfigStore()
        prompts = ScriptedPromptSource(store, {"SETUP_CICD": "Yes"})

        assert prompts.resolve("SETUP_CICD", validate=str.lower) == "yes"
        assert store.get("SETUP_CICD") == "yes"


class TestScriptedConfirm:
    """Tests for scripted yes/no answers."""

    def test_uses_keyed_answer(self):
        prompts = ScriptedPromptSource(MemoryConfigStore(), {"RESUME": "n"})
        assert prompts.confirm("Resume?", default=True, key="RESUME") is False

    def test_falls_back_to_default(self):
        prompts = ScriptedPromptSource(MemoryConfigStore())
        assert prompts.confirm("Resume?", default=True, key="RESUME") is True

    def test_pause_is_recorded(self):
        prompts = ScriptedPromptSource(MemoryConfigStore())
        prompts.pause("Add the key")
        assert prompts.pauses == ["Add the key"]


class TestClickPromptSource:
    """Tests for the terminal prompt source."""

    def test_secret_prompt_hides_input(self):
        prompts = ClickPromptSource(MemoryConfigStore())

        with patch("lxcbootstrap.prompts.click.prompt", return_value="s3cret") as mock_prompt:
            assert prompts.resolve("DB_PASSWORD", secret=True, text="Database password") == "s3cret"

        assert mock_prompt.call_args.kwargs["hide_input"] is True


@pytest.mark.parametrize(
    "raw,expected",
    [("y", True), ("YES", True), ("n", False), ("No", False), ("", None), ("maybe", None)],
)
def test_parse_yes_no(raw, expected):
    assert parse_yes_no(raw) is expected

"""
Tests for the question plan and interview branches.
"""

import logging
from unittest.mock import patch

import pytest

from lxcbootstrap.errors import InvalidChoice, RequiredValueMissing
from lxcbootstrap.prompts import ClickPromptSource, ScriptedPromptSource
from lxcbootstrap.questions import (
    Question,
    build_questions,
    cicd_enabled,
    interview,
)
from lxcbootstrap.storage import MemoryConfigStore

BASE_ANSWERS = {
    "APP_NAME": "demo",
    "GITHUB_REPO": "git@github.com:acme/demo.git",
}


def run_interview(settings, answers, store=None):
    store = store if store is not None else MemoryConfigStore()
    prompts = ScriptedPromptSource(store, answers)
    values = interview(prompts, build_questions(settings))
    return values, prompts, store


class TestInterview:
    """Tests for interview() branching."""

    def test_pocketbase_branch(self, settings):
        values, prompts, _ = run_interview(
            settings, {**BASE_ANSWERS, "DB_CHOICE": "1", "POCKETBASE_PASSWORD": "pw"}
        )

        assert values["POCKETBASE_EMAIL"] == settings.pocketbase_default_email
        assert "DB_USERNAME" not in prompts.elicited
        assert values["SETUP_CICD"] == "n"
        assert "GITHUB_TOKEN" not in prompts.elicited

    def test_postgresql_branch(self, settings):
        values, prompts, _ = run_interview(
            settings, {**BASE_ANSWERS, "DB_CHOICE": "2", "DB_PASSWORD": "pw"}
        )

        assert values["DB_USERNAME"] == "appuser"
        assert values["DB_PASSWORD"] == "pw"
        assert "POCKETBASE_EMAIL" not in prompts.elicited

    def test_default_database_is_pocketbase(self, settings):
        values, _, _ = run_interview(settings, {**BASE_ANSWERS, "POCKETBASE_PASSWORD": "pw"})
        assert values["DB_CHOICE"] == "1"

    def test_invalid_database_choice(self, settings):
        with pytest.raises(InvalidChoice):
            run_interview(settings, {**BASE_ANSWERS, "DB_CHOICE": "3"})

    def test_missing_app_name(self, settings):
        with pytest.raises(RequiredValueMissing):
            run_interview(settings, {})

    def test_cicd_complete(self, settings):
        values, _, _ = run_interview(
            settings,
            {
                **BASE_ANSWERS,
                "POCKETBASE_PASSWORD": "pw",
                "SETUP_CICD": "yes",
                "GITHUB_TOKEN": "ghp_x",
                "TOOLBOX_IP": "10.0.0.5",
            },
        )

        assert values["SETUP_CICD"] == "y"
        assert cicd_enabled(values)

    def test_cicd_without_token_skips_toolbox_question(self, settings, caplog):
        with caplog.at_level(logging.WARNING, logger="lxcbootstrap"):
            values, prompts, _ = run_interview(
                settings, {**BASE_ANSWERS, "POCKETBASE_PASSWORD": "pw", "SETUP_CICD": "y"}
            )

        assert values["GITHUB_TOKEN"] == ""
        assert "TOOLBOX_IP" not in prompts.elicited
        assert not cicd_enabled(values)
        assert "CI/CD will be skipped" in caplog.text

    def test_resumed_interview_asks_nothing(self, settings):
        """A second interview over the same store reuses every answer."""
        answers = {**BASE_ANSWERS, "POCKETBASE_PASSWORD": "pw"}
        first, _, store = run_interview(settings, answers)

        second, prompts, _ = run_interview(settings, {}, store=store)

        assert second == first
        assert prompts.elicited == []


class TestQuestion:
    """Tests for Question.validate."""

    def test_yes_no_normalized(self):
        question = Question("SETUP_CICD", "CI/CD?", yes_no=True)
        assert question.validate("YES") == "y"
        assert question.validate("whatever") == "n"

    def test_choices_enforced(self):
        question = Question("DB_CHOICE", "Database", choices=("1", "2"))
        assert question.validate("2") == "2"
        with pytest.raises(InvalidChoice):
            question.validate("postgres")


class TestTerminalPrompts:
    """Question texts as rendered by the click prompt source."""

    def test_cicd_prompt_shows_a_single_default_hint(self, settings):
        store = MemoryConfigStore(
            {**BASE_ANSWERS, "DB_CHOICE": "1", "POCKETBASE_EMAIL": "a@b.c", "POCKETBASE_PASSWORD": "pw"}
        )

        with patch("lxcbootstrap.prompts.click.prompt", return_value="") as mock_prompt:
            values = interview(ClickPromptSource(store), build_questions(settings))

        text = mock_prompt.call_args.args[0]
        assert text == "Set up automated deployment?"
        assert mock_prompt.call_args.kwargs["default"] == "n"
        assert mock_prompt.call_args.kwargs["show_default"] is True
        assert values["SETUP_CICD"] == "n"

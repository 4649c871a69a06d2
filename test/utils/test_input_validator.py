#!/usr/bin/env python3
"""
Tests for input validation with objective, measurable criteria.
"""

import pytest

from pc_academy.utils.input_validator import InputValidator, SuspiciousInputError


class TestInputValidatorLegitimateInput:
    """Ordinary learner input passes"""

    def test_component_query(self):
        InputValidator.validate_component_query("Is a 650W PSU enough for an RTX 4070 and a Ryzen 5 7600?")

    def test_config_analysis_with_one_code_block(self):
        InputValidator.validate_config_analysis("```\nCPU: i5-13400F\nGPU: RX 7600\nRAM: 16GB DDR4\n```")

    def test_chinese_text(self):
        InputValidator.validate_component_query("請問 DDR5 記憶體可以裝在 B660 主機板上嗎？")

    def test_post_and_comment(self):
        InputValidator.validate_post("Which cooler?", "My CPU hits 95C under load. Any advice?")
        InputValidator.validate_comment("Try re-applying thermal paste :)")

    def test_build(self):
        InputValidator.validate_build("Budget rig", "Alice", "", ["Ryzen 5 5600", "B550M"])

    def test_empty_field_is_allowed(self):
        InputValidator.validate_field("", "comment")


class TestInputValidatorRejections:
    def test_too_long(self):
        with pytest.raises(SuspiciousInputError, match="maximum length"):
            InputValidator.validate_component_query("a" * 1001)

    def test_not_a_string(self):
        with pytest.raises(SuspiciousInputError):
            InputValidator.validate_field(None, "query")

    def test_control_characters(self):
        with pytest.raises(SuspiciousInputError, match="control characters"):
            InputValidator.validate_component_query("hi\x00\x01\x02")

    def test_section_headers(self):
        with pytest.raises(SuspiciousInputError, match="section headers"):
            InputValidator.validate_component_query("### a\n### b\n### c\n### d")

    def test_code_fences_in_prompt_fields(self):
        with pytest.raises(SuspiciousInputError, match="code block"):
            InputValidator.validate_component_query("```a``` ```b```")

    def test_code_fences_allowed_in_forum_posts(self):
        InputValidator.validate_post("Logs", "```a``` ```b```")

    def test_special_character_runs(self):
        with pytest.raises(SuspiciousInputError, match="unusual character"):
            InputValidator.validate_comment("hello " + "!@#$%^&*()_+" + " world")

    def test_component_names_are_checked(self):
        with pytest.raises(SuspiciousInputError):
            InputValidator.validate_build("Rig", "Alice", "", ["x" * 201])


def test_truncate_for_logging():
    assert InputValidator.truncate_for_logging("short") == "short"
    assert InputValidator.truncate_for_logging("x" * 150) == "x" * 100 + "..."

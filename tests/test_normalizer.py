"""Tests for the translation normalizer."""

import pytest

from llm_vocab_memo.normalizer import JAPANESE_SCRIPT, ScriptTable, normalize, strip_markup, strip_scaffolding


def test_empty_input_returns_empty() -> None:
    assert normalize("") == ""
    assert normalize("   \n\t ") == ""


def test_non_string_input_returns_empty() -> None:
    assert normalize(None) == ""
    assert normalize(42) == ""


def test_only_scaffolding_markers_returns_empty() -> None:
    raw = "THINK: the user wants a translation\nACTION: lookup\nOBSERVATION: found it\nFINAL ANSWER:"
    assert normalize(raw) == ""


def test_final_answer_after_reasoning() -> None:
    assert normalize("THINK: let me consider\nFINAL ANSWER: 説得力のある") == "説得力のある"


def test_markers_are_case_insensitive() -> None:
    raw = "Thought: hmm\naction: none\nObservation:\nfinal answer: 犬"
    assert normalize(raw) == "犬"


def test_final_answer_marker_stripped_inline() -> None:
    assert normalize("So the Final Answer: りんご") == "りんご"


def test_trailing_script_run_wins_over_reasoning() -> None:
    raw = "The word 'cat' is usually rendered as ネコ in katakana, but the common form is 猫"
    assert normalize(raw) == "猫"


def test_script_run_keeps_in_script_punctuation() -> None:
    assert normalize("Answer: 「説得力のある」") == "「説得力のある」"


def test_code_fences_and_bold_removed() -> None:
    raw = "```text\n**りんご**\n```"
    assert normalize(raw) == "りんご"


def test_code_fence_without_newline_keeps_word() -> None:
    assert strip_markup("```apple```") == "apple"


def test_no_script_run_returns_last_line() -> None:
    raw = "Here is the translation:\n\n  ringo  \n"
    assert normalize(raw) == "ringo"


def test_only_punctuation_returns_empty() -> None:
    assert normalize("...\n!!!") == ""
    assert normalize("。、・") == ""


def test_punctuation_only_run_is_ignored() -> None:
    # the trailing 「」 is not a translation; fall back to the earlier run
    assert normalize("犬 「」") == "犬"


def test_marker_word_inside_sentence_is_kept() -> None:
    assert normalize("Action movies are 映画") == "映画"


def test_strip_scaffolding_drops_whole_lines() -> None:
    assert strip_scaffolding("THINK: x\nkeep me").strip() == "keep me"


def test_custom_script_table() -> None:
    hangul = ScriptTable(name="hangul", ranges=((0xAC00, 0xD7A3),), punctuation="")
    assert normalize("The answer is 사과", script=hangul) == "사과"
    # Japanese text is not part of the hangul table, so the last line is used
    assert normalize("りんご\napple", script=hangul) == "apple"


@pytest.mark.parametrize("raw", [
    "THINK:",
    "**",
    "``` ```",
    "FINAL ANSWER",
    "\n\n\n",
])
def test_degenerate_inputs_do_not_raise(raw: str) -> None:
    assert normalize(raw) == ""


def test_japanese_table_letters() -> None:
    assert JAPANESE_SCRIPT.is_letter("あ")
    assert JAPANESE_SCRIPT.is_letter("カ")
    assert JAPANESE_SCRIPT.is_letter("猫")
    assert JAPANESE_SCRIPT.is_letter("々")
    assert not JAPANESE_SCRIPT.is_letter("・")
    assert not JAPANESE_SCRIPT.is_letter("a")

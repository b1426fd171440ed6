"""
Translation normalizer.

Reduces raw generation-service text (which may contain agent scaffolding,
markdown, and reasoning in English) to a single translation line.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class ScriptTable:
    """Characters that make up the target script.

    ``ranges`` are inclusive code point ranges of letters (syllabaries,
    ideographs); ``punctuation`` lists in-script marks that may appear inside
    or around a run but never make a run on their own.
    """
    name: str
    ranges: Tuple[Tuple[int, int], ...]
    punctuation: str = ""
    _run_pattern: Optional[re.Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def is_letter(self, ch: str) -> bool:
        code = ord(ch)
        return any(lo <= code <= hi for lo, hi in self.ranges)

    def run_pattern(self) -> re.Pattern[str]:
        if self._run_pattern is None:
            parts = [f"{re.escape(chr(lo))}-{re.escape(chr(hi))}" for lo, hi in self.ranges]
            parts.append(re.escape(self.punctuation))
            object.__setattr__(self, "_run_pattern", re.compile(f"[{''.join(parts)}]+"))
        return self._run_pattern  # type: ignore[return-value]

    def runs(self, text: str) -> List[str]:
        """Maximal runs of script characters that contain at least one letter."""
        return [
            m.group(0).strip()
            for m in self.run_pattern().finditer(text)
            if any(self.is_letter(ch) for ch in m.group(0))
        ]


JAPANESE_SCRIPT = ScriptTable(
    name="japanese",
    ranges=(
        (0x3005, 0x3005),  # 々
        (0x3040, 0x309F),  # hiragana
        (0x30A0, 0x30FA),  # katakana
        (0x30FC, 0x30FF),  # ー and katakana iteration marks
        (0x3400, 0x4DBF),  # CJK extension A
        (0x4E00, 0x9FFF),  # CJK unified ideographs
        (0xFF66, 0xFF9F),  # half-width katakana
    ),
    punctuation="、。・「」『』（）！？〜…",
)


# Agent scaffolding markers. Lines starting with a dropped marker are removed
# entirely; the final answer marker is removed wherever it appears.
DROPPED_LINE_MARKERS: Tuple[str, ...] = ("THINK", "THOUGHT", "ACTION", "OBSERVATION")
FINAL_ANSWER_MARKER = "FINAL ANSWER"

_DROPPED_LINE = re.compile(
    r"^[ \t]*(?:" + "|".join(re.escape(m) for m in DROPPED_LINE_MARKERS) + r")[ \t]*(?:[:：].*)?$",
    re.IGNORECASE | re.MULTILINE,
)
_FINAL_ANSWER = re.compile(
    r"\s+".join(re.escape(word) for word in FINAL_ANSWER_MARKER.split()) + r"\s*[:：]?",
    re.IGNORECASE,
)
# a language tag is only part of the fence when it ends the line
_CODE_FENCE = re.compile(r"```(?:[A-Za-z0-9_+-]+(?=\r?\n|$))?")
_BOLD = re.compile(r"\*\*|__")


def strip_scaffolding(text: str) -> str:
    text = _DROPPED_LINE.sub("", text)
    return _FINAL_ANSWER.sub("", text)


def strip_markup(text: str) -> str:
    text = _CODE_FENCE.sub("", text)
    return _BOLD.sub("", text)


def normalize(raw: Any, script: ScriptTable = JAPANESE_SCRIPT) -> str:
    """Extract a single canonical translation from raw model output.

    Returns an empty string when nothing usable remains, so callers can treat
    ``""`` as a failed translation.
    """
    if not isinstance(raw, str):
        return ""

    cleaned = strip_markup(strip_scaffolding(raw)).strip()
    if not cleaned:
        return ""

    # The answer usually comes after any reasoning, so prefer the last run.
    runs = script.runs(cleaned)
    if runs:
        return runs[-1]

    lines = [line.strip() for line in cleaned.splitlines()]
    lines = [line for line in lines if any(ch.isalnum() for ch in line)]
    return lines[-1] if lines else ""

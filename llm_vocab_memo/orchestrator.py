import concurrent.futures
import contextlib
import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from .errors import NotFoundError, ServiceError
from .generation import Generator
from .normalizer import normalize
from .store import VocabStore

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

TRANSLATION_PROMPT = (
    "英単語「{term}」の日本語訳を1つだけ答えてください。"
    "説明や例文は不要です。訳語のみを出力してください。"
)
EXAMPLE_PROMPT = (
    "英単語「{term}」を使って、自然な英語の例文を1つ。中級レベル、15語以内。"
    "日本語訳も1行で。フォーマット: EN: ... / JA: ..."
)

# Stored in place of an example when generation failed, so "requested but
# failed" is distinguishable from "never requested" (example is None).
NO_RESPONSE = "(no response)"

TRANSLATION_FAILED_MESSAGE = "翻訳の生成に失敗しました"
EXAMPLE_FAILED_MESSAGE = "例文の生成に失敗しました"


@dataclass
class GenerationOutcome:
    entry_id: str
    kind: str  # "translation" or "example"
    text: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"entry_id": self.entry_id, "kind": self.kind, "text": self.text,
                "ok": self.ok, "error": self.error}


class Orchestrator:
    """Connects the generation service, the normalizer and the store.

    Service failures never escape: translations degrade to an untouched
    meaning plus an error message, examples to ``NO_RESPONSE``.

    Background requests run on a thread pool. Two requests for the same entry
    are allowed to race; whichever completes last is what the store keeps.
    """

    def __init__(self, store: VocabStore, generator: Optional[Generator],
                 normalizer: Callable[[str], str] = normalize,
                 max_workers: int = 4) -> None:
        self.store = store
        self.generator = generator
        self.normalizer = normalizer
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
        self._pending: Dict[str, int] = {}
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Raw requests
    # ------------------------------------------------------------------
    def _generate(self, prompt: str) -> str:
        if self.generator is None:
            raise ServiceError(None, "AI model not configured")
        return self.generator.generate(prompt)

    def request_translation(self, term: str) -> str:
        """Raw translation text for ``term``; empty string on failure."""
        try:
            return self._generate(TRANSLATION_PROMPT.format(term=term))
        except ServiceError as e:
            print(f"❌ Translation request for '{term}' failed: {e}")
            return ""

    def request_example(self, term: str) -> str:
        """Raw example text for ``term``; ``NO_RESPONSE`` on failure."""
        try:
            text = self._generate(EXAMPLE_PROMPT.format(term=term)).strip()
        except ServiceError as e:
            print(f"❌ Example request for '{term}' failed: {e}")
            return NO_RESPONSE
        return text or NO_RESPONSE

    # ------------------------------------------------------------------
    # Store updates
    # ------------------------------------------------------------------
    def translate_entry(self, entry_id: str) -> GenerationOutcome:
        entry = self.store.get(entry_id)
        with self._tracking(entry_id):
            raw = self.request_translation(entry.term)
            meaning = self.normalizer(raw)
            if DEBUG_MODE:
                print(f"   Raw translation: {raw!r} -> {meaning!r}")
            if not meaning:
                return GenerationOutcome(entry_id, "translation", "", TRANSLATION_FAILED_MESSAGE)
            if not self._write(entry_id, lambda: self.store.update(entry_id, meaning=meaning)):
                return GenerationOutcome(entry_id, "translation", meaning, "entry was deleted")
        print(f"✅ Translated '{entry.term}' -> {meaning}")
        return GenerationOutcome(entry_id, "translation", meaning)

    def generate_example(self, entry_id: str) -> GenerationOutcome:
        entry = self.store.get(entry_id)
        with self._tracking(entry_id):
            text = self.request_example(entry.term)
            if not self._write(entry_id, lambda: self.store.set_example(entry_id, text)):
                return GenerationOutcome(entry_id, "example", text, "entry was deleted")
        if text == NO_RESPONSE:
            return GenerationOutcome(entry_id, "example", text, EXAMPLE_FAILED_MESSAGE)
        print(f"✅ Example created for '{entry.term}'")
        return GenerationOutcome(entry_id, "example", text)

    def add_entry(self, term: str, meaning: str = "", note: str = "",
                  auto_translate: bool = False) -> str:
        """Create an entry, filling an empty meaning from the service if asked."""
        entry_id = self.store.create(term, meaning, note)
        if auto_translate and not self.store.get(entry_id).meaning:
            self.translate_entry(entry_id)
        return entry_id

    # ------------------------------------------------------------------
    # Background requests
    # ------------------------------------------------------------------
    def submit_translation(self, entry_id: str) -> "concurrent.futures.Future[GenerationOutcome]":
        self.store.get(entry_id)
        self._mark(entry_id, +1)
        return self._executor.submit(self._run_then_unmark, entry_id, "translation", self.translate_entry)

    def submit_example(self, entry_id: str) -> "concurrent.futures.Future[GenerationOutcome]":
        self.store.get(entry_id)
        self._mark(entry_id, +1)
        return self._executor.submit(self._run_then_unmark, entry_id, "example", self.generate_example)

    def is_generating(self, entry_id: str) -> bool:
        with self._pending_lock:
            return self._pending.get(entry_id, 0) > 0

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    def _run_then_unmark(self, entry_id: str, kind: str,
                         task: Callable[[str], GenerationOutcome]) -> GenerationOutcome:
        try:
            return task(entry_id)
        except NotFoundError:
            print(f"⚠️ Entry {entry_id} was deleted before generation started")
            return GenerationOutcome(entry_id, kind, "", "entry was deleted")
        finally:
            self._mark(entry_id, -1)

    def _write(self, entry_id: str, apply: Callable[[], None]) -> bool:
        try:
            apply()
        except NotFoundError:
            print(f"⚠️ Entry {entry_id} was deleted while generating; result dropped")
            return False
        return True

    def _mark(self, entry_id: str, delta: int) -> None:
        with self._pending_lock:
            count = self._pending.get(entry_id, 0) + delta
            if count > 0:
                self._pending[entry_id] = count
            else:
                self._pending.pop(entry_id, None)

    @contextlib.contextmanager
    def _tracking(self, entry_id: str) -> Iterator[None]:
        self._mark(entry_id, +1)
        try:
            yield
        finally:
            self._mark(entry_id, -1)

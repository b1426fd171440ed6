from . import db
from .errors import InsufficientDataError, NotFoundError, ServiceError, ValidationError
from .store import VocabStore
from typing import Any, Optional

import click
import llm  # type: ignore

hookimpl = llm.hookimpl  # type: ignore


def _get_store() -> VocabStore:
    if not db.is_db_initialized():
        db.init_db()
    return VocabStore(db.SqlPersistence())


def _get_orchestrator(store: VocabStore, model: Optional[str]) -> Any:
    from .generation import LLMGenerator
    from .orchestrator import Orchestrator
    try:
        generator = LLMGenerator.from_name(model) if model else LLMGenerator(llm.get_model())
    except (ServiceError, llm.UnknownModelError) as e:
        click.echo(f"⚠️  Model not available: {e}")
        generator = None
    return Orchestrator(store, generator, max_workers=1)


def _echo_entry(entry: Any, show_id: bool = True) -> None:
    prefix = f"[{entry.id[:8]}] " if show_id else ""
    click.echo(f"{prefix}{entry.term}")
    if entry.meaning:
        click.echo(f"    意味: {entry.meaning}")
    if entry.note:
        click.echo(f"    メモ: {entry.note}")
    if entry.example:
        for line in entry.example.splitlines():
            click.echo(f"    {line}")


def _resolve_id(store: VocabStore, prefix: str) -> str:
    """Accept a full id or an unambiguous prefix as shown by vocab-list."""
    matches = [e.id for e in store.list() if e.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.ClickException(f"No entry with id '{prefix}'")
    raise click.ClickException(f"Id prefix '{prefix}' is ambiguous")


@hookimpl  # type: ignore[misc]
def register_commands(cli: Any) -> None:

    @cli.command("vocab-add")  # type: ignore[misc]
    @click.argument("term")
    @click.option("--meaning", default="", help="Translation (leave empty to fill later)")
    @click.option("--note", default="", help="Free-text note, e.g. synonyms")
    @click.option("--translate", is_flag=True, help="Ask the model for a translation when --meaning is empty")
    @click.option("--model", default=None, help="LLM model used with --translate")
    def add(term: str, meaning: str, note: str, translate: bool, model: Optional[str]) -> None:
        """Add a word to the notebook."""
        store = _get_store()
        try:
            if translate and not meaning.strip():
                orchestrator = _get_orchestrator(store, model)
                try:
                    entry_id = orchestrator.add_entry(term, meaning, note, auto_translate=True)
                finally:
                    orchestrator.shutdown()
            else:
                entry_id = store.create(term, meaning, note)
        except ValidationError as e:
            raise click.ClickException(str(e))
        _echo_entry(store.get(entry_id))

    @cli.command("vocab-list")  # type: ignore[misc]
    def list_entries() -> None:
        """List all words, newest first."""
        store = _get_store()
        click.echo(f"合計 {store.count()} 件")
        for entry in store.list():
            _echo_entry(entry)

    @cli.command("vocab-edit")  # type: ignore[misc]
    @click.argument("entry_id")
    @click.option("--term", default=None, help="New term")
    @click.option("--meaning", default=None, help="New translation")
    @click.option("--note", default=None, help="New note")
    def edit(entry_id: str, term: Optional[str], meaning: Optional[str], note: Optional[str]) -> None:
        """Edit a word's term, meaning or note."""
        store = _get_store()
        full_id = _resolve_id(store, entry_id)
        fields = {k: v for k, v in {"term": term, "meaning": meaning, "note": note}.items() if v is not None}
        if not fields:
            click.echo("Nothing to change.")
            return
        try:
            store.update(full_id, **fields)
        except (ValidationError, NotFoundError) as e:
            raise click.ClickException(str(e))
        _echo_entry(store.get(full_id))

    @cli.command("vocab-delete")  # type: ignore[misc]
    @click.argument("entry_id")
    def delete(entry_id: str) -> None:
        """Delete a word (it stays in the history)."""
        store = _get_store()
        store.delete(_resolve_id(store, entry_id))
        click.echo("Deleted.")

    @cli.command("vocab-translate")  # type: ignore[misc]
    @click.argument("entry_id")
    @click.option("--model", default=None, help="LLM model name")
    def translate(entry_id: str, model: Optional[str]) -> None:
        """Fill in a word's meaning using the model."""
        store = _get_store()
        full_id = _resolve_id(store, entry_id)
        orchestrator = _get_orchestrator(store, model)
        try:
            outcome = orchestrator.translate_entry(full_id)
        finally:
            orchestrator.shutdown()
        if not outcome.ok:
            click.echo(f"⚠️  {outcome.error}")
        _echo_entry(store.get(full_id))

    @cli.command("vocab-example")  # type: ignore[misc]
    @click.argument("entry_id")
    @click.option("--model", default=None, help="LLM model name")
    def example(entry_id: str, model: Optional[str]) -> None:
        """Generate an example sentence for a word."""
        store = _get_store()
        full_id = _resolve_id(store, entry_id)
        orchestrator = _get_orchestrator(store, model)
        try:
            outcome = orchestrator.generate_example(full_id)
        finally:
            orchestrator.shutdown()
        if not outcome.ok:
            click.echo(f"⚠️  {outcome.error}")
        _echo_entry(store.get(full_id))

    @cli.command("vocab-history")  # type: ignore[misc]
    def history() -> None:
        """Show every word ever added, including deleted ones."""
        store = _get_store()
        active = {e.id for e in store.list()}
        records = store.history()
        click.echo(f"History: {len(records)} words")
        for record in records:
            marker = "" if record.id in active else " (deleted)"
            meaning = f" - {record.meaning}" if record.meaning else ""
            click.echo(f"{record.created_at:%Y-%m-%d} {record.term}{meaning}{marker}")

    @cli.command("vocab-quiz")  # type: ignore[misc]
    @click.option("--seed", type=int, default=None, help="Random seed for a reproducible quiz")
    def quiz(seed: Optional[int]) -> None:
        """Take a multiple-choice quiz over your words."""
        import random
        from .quiz import QuizEngine, QuizState

        store = _get_store()
        engine = QuizEngine(random.Random(seed))
        try:
            engine.start_session(store.quiz_candidates())
        except InsufficientDataError as e:
            click.echo(f"⚠️  {e}")
            return

        while True:
            question = engine.current_question()
            click.echo(f"\nQ{question.number}/{question.count}: {question.term}")
            for i, choice in enumerate(question.choices, start=1):
                click.echo(f"  {i}. {choice}")
            picked = click.prompt("Your answer", type=click.IntRange(1, len(question.choices)))
            if engine.answer(question.choices[picked - 1]):
                click.echo("🎉 Correct!")
            else:
                click.echo(f"❌ Incorrect. Answer: {engine.current_question().answer}")
            status = engine.advance()
            if status.state is QuizState.FINISHED:
                break

        score = engine.summary()
        click.echo(f"\nScore: {score.correct}/{score.total} ({score.accuracy}%)")

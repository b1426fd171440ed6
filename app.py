#!/usr/bin/env python3
"""
Vocab Memo - Flask JSON API
Vocabulary notebook with AI translations, example sentences and quizzes.
"""

import os
import sys
import traceback
from typing import Any, Optional

from flask import Flask, request, jsonify

# Check for test mode
TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_vocab_memo import db
from llm_vocab_memo.errors import (
    InsufficientDataError, InvalidStateError, NotFoundError, ValidationError, VocabError,
)
from llm_vocab_memo.generation import DEFAULT_MODEL, Generator, OpenAIGenerator
from llm_vocab_memo.orchestrator import Orchestrator
from llm_vocab_memo.quiz import QuizEngine
from llm_vocab_memo.store import EDITABLE_FIELDS, VocabStore

# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

# Global application state (single user, single quiz session)
store: Optional[VocabStore] = None
orchestrator: Optional[Orchestrator] = None
quiz_engine = QuizEngine()

STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    InsufficientDataError: 409,
    InvalidStateError: 409,
}


def init_app(generator: Optional[Generator] = None,
             vocab_store: Optional[VocabStore] = None,
             engine: Optional[QuizEngine] = None) -> None:
    """Wire the store, orchestrator and quiz engine together."""
    global store, orchestrator, quiz_engine

    if vocab_store is None:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
        vocab_store = VocabStore(db.SqlPersistence())
    store = vocab_store

    if orchestrator is not None:
        orchestrator.shutdown(wait=False)
    orchestrator = Orchestrator(store, generator)
    quiz_engine = engine or QuizEngine()


def init_ai(api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            model_name: str = DEFAULT_MODEL) -> Optional[Generator]:
    """Build the generation client from arguments or the environment."""
    if TEST_MODE:
        return None
    try:
        generator = OpenAIGenerator.from_env(api_key=api_key, base_url=base_url, model_name=model_name)
    except Exception as e:
        print(f"❌ Failed to initialize AI: {e}")
        return None
    if generator is not None:
        print(f"✅ AI initialized with model: {model_name}")
    return generator


app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')


@app.before_request
def ensure_initialized() -> None:
    if store is None:
        init_app(init_ai())


@app.errorhandler(VocabError)
def handle_vocab_error(e: VocabError) -> Any:
    status = STATUS_CODES.get(type(e), 400)
    if DEBUG:
        traceback.print_exc()
    return jsonify({'status': 'error', 'error': type(e).__name__, 'message': str(e)}), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _entry_fields(data: dict) -> dict:
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"cannot update field(s): {', '.join(sorted(unknown))}")
    for name, value in data.items():
        if not isinstance(value, str):
            raise ValidationError(f"'{name}' must be a string")
    return data


def _run_in_background() -> bool:
    return request.args.get('async', '0') in ('1', 'true')


def _accepted(entry_id: str) -> Any:
    assert orchestrator is not None and store is not None
    data = store.get(entry_id).to_dict()
    data['generating'] = orchestrator.is_generating(entry_id)
    return jsonify({'status': 'accepted', 'entry': data}), 202


def _quiz_payload() -> dict:
    payload: dict = {'status': 'success', 'state': quiz_engine.state.value}
    if quiz_engine.session is not None:
        payload['question'] = quiz_engine.current_question().to_dict()
        payload['score'] = quiz_engine.summary().to_dict()
    return payload


# ----------------------------------------------------------------------
# Entries
# ----------------------------------------------------------------------
@app.route('/api/entries', methods=['GET'])
def api_list_entries() -> Any:
    assert store is not None and orchestrator is not None
    entries = []
    for entry in store.list():
        data = entry.to_dict()
        data['generating'] = orchestrator.is_generating(entry.id)
        entries.append(data)
    return jsonify({'status': 'success', 'count': len(entries), 'entries': entries})


@app.route('/api/entries', methods=['POST'])
def api_create_entry() -> Any:
    assert orchestrator is not None and store is not None
    data = _json_body()
    auto_translate = bool(data.pop('auto_translate', False))
    fields = _entry_fields(data)
    entry_id = orchestrator.add_entry(
        fields.get('term', ''),
        fields.get('meaning', ''),
        fields.get('note', ''),
        auto_translate=auto_translate,
    )
    return jsonify({'status': 'success', 'entry': store.get(entry_id).to_dict()}), 201


@app.route('/api/entries/<entry_id>', methods=['PATCH'])
def api_update_entry(entry_id: str) -> Any:
    assert store is not None
    store.update(entry_id, **_entry_fields(_json_body()))
    return jsonify({'status': 'success', 'entry': store.get(entry_id).to_dict()})


@app.route('/api/entries/<entry_id>', methods=['DELETE'])
def api_delete_entry(entry_id: str) -> Any:
    assert store is not None
    store.delete(entry_id)
    return jsonify({'status': 'success'})


@app.route('/api/entries/<entry_id>/translate', methods=['POST'])
def api_translate_entry(entry_id: str) -> Any:
    assert orchestrator is not None and store is not None
    if _run_in_background():
        orchestrator.submit_translation(entry_id)
        return _accepted(entry_id)
    outcome = orchestrator.translate_entry(entry_id)
    return jsonify({
        'status': 'success' if outcome.ok else 'error',
        'message': outcome.error,
        'entry': store.get(entry_id).to_dict(),
    })


@app.route('/api/entries/<entry_id>/example', methods=['POST'])
def api_example_entry(entry_id: str) -> Any:
    assert orchestrator is not None and store is not None
    if _run_in_background():
        orchestrator.submit_example(entry_id)
        return _accepted(entry_id)
    outcome = orchestrator.generate_example(entry_id)
    return jsonify({
        'status': 'success' if outcome.ok else 'error',
        'message': outcome.error,
        'entry': store.get(entry_id).to_dict(),
    })


@app.route('/api/history')
def api_history() -> Any:
    assert store is not None
    records = [r.to_dict() for r in store.history()]
    return jsonify({'status': 'success', 'count': len(records), 'history': records})


# ----------------------------------------------------------------------
# Quiz
# ----------------------------------------------------------------------
@app.route('/api/quiz', methods=['GET'])
def api_quiz_state() -> Any:
    return jsonify(_quiz_payload())


@app.route('/api/quiz/start', methods=['POST'])
def api_quiz_start() -> Any:
    assert store is not None
    quiz_engine.start_session(store.quiz_candidates())
    return jsonify(_quiz_payload())


@app.route('/api/quiz/answer', methods=['POST'])
def api_quiz_answer() -> Any:
    choice = _json_body().get('choice')
    if not isinstance(choice, str):
        raise ValidationError("'choice' must be a string")
    is_correct = quiz_engine.answer(choice)
    payload = _quiz_payload()
    payload['is_correct'] = is_correct
    return jsonify(payload)


@app.route('/api/quiz/advance', methods=['POST'])
def api_quiz_advance() -> Any:
    quiz_engine.advance()
    return jsonify(_quiz_payload())


@app.route('/api/quiz/abort', methods=['POST'])
def api_quiz_abort() -> Any:
    quiz_engine.abort()
    return jsonify(_quiz_payload())


@app.route('/ai_status')
def ai_status() -> Any:
    configured = orchestrator is not None and orchestrator.generator is not None
    return jsonify({'ai_configured': configured})


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Vocab Memo')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--openai-key', help='OpenAI API Key')
    parser.add_argument('--base-url', help='OpenAI-compatible endpoint (OpenRouter, Gemini, ...)')
    parser.add_argument('--model', default=DEFAULT_MODEL, help='AI model name')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    init_app(init_ai(api_key=args.openai_key, base_url=args.base_url, model_name=args.model))

    print(f"🚀 Starting server on http://{args.host}:{args.port}")
    app.run(debug=DEBUG, host=args.host, port=args.port)

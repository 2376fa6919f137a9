"""Tiny terminal UI helpers (prompt_toolkit-based).

Interactive prompts used by the ``classify`` command, kept apart from the
ledger logic so they are easy to drive from a pipe input in tests.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

SKIP_SENTINEL = "(skip)"


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        remainder = _prefix_remainder(self._vocab, text)
        return Suggestion(remainder) if remainder else None


def _prefix_remainder(vocab: Sequence[str], text: str) -> str | None:
    lower = text.lower()
    for w in vocab:
        if w.lower() == lower:
            return None
    for w in vocab:
        if w.lower().startswith(lower):
            return w[len(text) :] or None
    return None


def _session_like(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def select_bucket(
    bucket_names: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Bucket (Tab to complete, Enter to accept, Esc to stop): ",
    session: PromptSession | None = None,
    allow_skip: bool = True,
) -> str | None:
    """Prompt for one of ``bucket_names``.

    Returns the canonical bucket name, ``SKIP_SENTINEL`` when the user skips
    the transaction, or ``None`` when the prompt is cancelled with Esc.
    Input is matched case-insensitively; unknown names are rejected inline.
    """

    words = list(bucket_names)
    if allow_skip:
        words.append(SKIP_SENTINEL)
    canonical = {w.lower(): w for w in words}

    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)
    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        b = event.app.current_buffer
        remainder = _prefix_remainder(words, b.document.text)
        if remainder:
            b.insert_text(remainder)
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            remainder = _prefix_remainder(words, b.document.text)
            if remainder:
                b.insert_text(remainder)
        b.validate_and_handle()

    class _BucketValidator(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in canonical:
                raise ValidationError(message="Choose a bucket from the list.")

    sess = _session_like(session, kb)
    value = sess.prompt(
        message,
        default=default,
        completer=completer,
        auto_suggest=_PrefixSuggest(words),
        validator=_BucketValidator(),
        validate_while_typing=False,
        key_bindings=kb,
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )
    if value is None:
        return None
    return canonical.get(value.strip().lower(), value)


__all__ = ["SKIP_SENTINEL", "select_bucket"]

"""Terminal prompts for the operator decisions imports and reconciliation need.

Kept apart from the ledger logic so they can be driven from a pipe in tests.
Every prompt accepts an optional ``session`` whose input/output are reused;
Esc cancels and returns ``None``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import ValidationError, Validator

_YES = frozenset({"y", "yes", "i", "include"})
_NO = frozenset({"n", "no", "e", "exclude"})


def _session(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _cancel_bindings() -> KeyBindings:
    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    return kb


class _YesNoValidator(Validator):
    def validate(self, document) -> None:
        text = document.text.strip().lower()
        if text and text not in _YES and text not in _NO:
            raise ValidationError(message="Answer y(es) or n(o)")


def prompt_yes_no(
    message: str,
    *,
    default: bool,
    session: PromptSession | None = None,
) -> bool | None:
    """Ask a yes/no question; Enter on an empty line takes ``default``."""

    kb = _cancel_bindings()
    hint = "[Y/n]" if default else "[y/N]"
    answer = _session(session, kb).prompt(
        f"{message} {hint} ",
        validator=_YesNoValidator(),
        validate_while_typing=False,
    )
    if answer is None:
        return None
    text = answer.strip().lower()
    if not text:
        return default
    return text in _YES


def prompt_duplicate_decision(
    label: str,
    *,
    session: PromptSession | None = None,
) -> bool | None:
    """Include a row flagged as a potential duplicate? Defaults to exclude."""

    return prompt_yes_no(
        f"Possible duplicate: {label}\n  Include anyway?", default=False, session=session
    )


def prompt_confirm_match(
    label: str,
    *,
    session: PromptSession | None = None,
) -> bool | None:
    """Accept a proposed payout-to-deposit match? Defaults to accept."""

    return prompt_yes_no(f"Match {label}?", default=True, session=session)


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str | None:
    """Pick one of ``categories``; typed prefixes complete on Tab or Enter.

    Matching is case-insensitive and the canonical spelling is returned.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}

    def best_prefix(text: str) -> str | None:
        lower = text.lower()
        if not lower or lower in canonical:
            return None
        return next((w for w in words if w.lower().startswith(lower)), None)

    class _PrefixSuggest(AutoSuggest):
        def get_suggestion(self, buffer, document):
            cand = best_prefix(document.text)
            if cand is None:
                return None
            return Suggestion(cand[len(document.text) :])

    class _CategoryValidator(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in canonical:
                raise ValidationError(message="Pick a category from the list")

    kb = _cancel_bindings()

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        b = event.app.current_buffer
        cand = best_prefix(b.document.text)
        if cand is not None:
            b.insert_text(cand[len(b.document.text) :])
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
            cand = best_prefix(b.document.text)
            if cand is not None:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    value = _session(session, kb).prompt(
        message,
        default=default,
        completer=WordCompleter(words, ignore_case=True, match_middle=True, sentence=False),
        auto_suggest=_PrefixSuggest(),
        validator=_CategoryValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    if value is None:
        return None
    return canonical.get(value.strip().lower(), value)


__all__ = [
    "prompt_confirm_match",
    "prompt_duplicate_decision",
    "prompt_yes_no",
    "select_category",
]

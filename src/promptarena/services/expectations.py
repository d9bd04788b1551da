"""Offline checks of scenario expectations against a model reply."""

import re

from pydantic import TypeAdapter

from promptarena.db.models.scenario import ScenarioExpectationRow
from promptarena.models.scenario import (
    Expectation,
    MustContain,
    MustContainAny,
    MustNotContain,
    RegexMatch,
    SemanticAssert,
)

_adapter = TypeAdapter(Expectation)

_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


def parse_expectation(row: ScenarioExpectationRow):
    """Rebuild the typed expectation stored in ``row``."""
    return _adapter.validate_python(
        {
            "expectationKey": row.expectation_key,
            "expectationType": row.expectation_type,
            "args": row.args,
            "weight": row.weight,
        }
    )


def _contains(text: str, needle: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return needle in text
    return needle.lower() in text.lower()


def evaluate_expectation(expectation, text: str) -> bool | None:
    """Return pass/fail, or None for kinds that need a model to judge."""
    if isinstance(expectation, MustContain):
        return _contains(text, expectation.args.text, expectation.args.case_sensitive)
    if isinstance(expectation, MustNotContain):
        return not _contains(text, expectation.args.text, expectation.args.case_sensitive)
    if isinstance(expectation, MustContainAny):
        return any(_contains(text, option, expectation.args.case_sensitive) for option in expectation.args.options)
    if isinstance(expectation, RegexMatch):
        flags = 0
        for flag in expectation.args.flags:
            flags |= _REGEX_FLAGS[flag]
        return re.search(expectation.args.pattern, text, flags) is not None
    if isinstance(expectation, SemanticAssert):
        return None
    raise TypeError(f"Unsupported expectation: {type(expectation).__name__}")

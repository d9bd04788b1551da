"""Helpers shared by the tenant-scoped services."""

from collections.abc import Awaitable, Callable, Iterable


async def copy_name(name: str, taken: Callable[[str], Awaitable[bool]], max_length: int) -> str:
    """Return the first free name of ``"{name} (Copy)"``, ``"{name} (Copy 2)"``, ..."""
    counter = 1
    while True:
        suffix = " (Copy)" if counter == 1 else f" (Copy {counter})"
        candidate = name[: max_length - len(suffix)] + suffix
        if not await taken(candidate):
            return candidate
        counter += 1


def matches_search(term: str | None, fields: Iterable[str | None], tags: Iterable[str] = ()) -> bool:
    """Case-insensitive substring match on ``fields`` or exact match on a tag."""
    if not term:
        return True
    needle = term.lower()
    if any(value and needle in value.lower() for value in fields):
        return True
    return term in set(tags or ())


def has_any_tag(row_tags: Iterable[str] | None, wanted: Iterable[str] | None) -> bool:
    wanted = [t for t in (wanted or []) if t]
    if not wanted:
        return True
    return bool(set(row_tags or ()) & set(wanted))

"""Text snippet merging for creatives observed across several scroll passes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

MAX_SNIPPETS = 20


def merge_snippets(existing: Sequence[str], incoming: Iterable[str], cap: int = MAX_SNIPPETS) -> list[str]:
    """Append unseen ``incoming`` snippets to ``existing`` until ``cap`` is reached.

    ``existing`` keeps its order; duplicates inside ``incoming`` are dropped as
    well as those already present. The input sequences are never mutated.
    """

    merged = list(existing[:cap])
    seen = set(merged)
    for snippet in incoming:
        if len(merged) >= cap:
            break
        if snippet in seen:
            continue
        merged.append(snippet)
        seen.add(snippet)
    return merged


def unique_snippets(snippets: Iterable[str], cap: int = MAX_SNIPPETS) -> list[str]:
    return merge_snippets([], snippets, cap)


__all__ = ["MAX_SNIPPETS", "merge_snippets", "unique_snippets"]

# -*- coding: utf-8 -*-

"""
Combinatorics for candidate generation.

- combinations(sets): cartesian product, element i drawn from sets[i]
- permutations(seq, size): ordered picks without repetition, by source position

Both are iterative work-stack enumerations (LIFO, no recursion). Output order is
the stack order: deterministic for a given input but not sorted.
"""

from __future__ import annotations

import math
from typing import Iterator, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


# ---------------------------
# Combinations
# ---------------------------

def iter_combinations(sets: Sequence[Sequence[T]]) -> Iterator[List[T]]:
    if len(sets) == 0:
        return

    stack: List[List[T]] = [[symbol] for symbol in sets[0]]

    while stack:
        last = stack.pop()
        if len(last) == len(sets):
            yield last
            continue
        for symbol in sets[len(last)]:
            stack.append(last + [symbol])


def combinations(sets: Sequence[Sequence[T]]) -> List[List[T]]:
    """All combinations of one element per set. combinations([]) == []."""
    return list(iter_combinations(sets))


def combination_count(sets: Sequence[Sequence[T]]) -> int:
    if len(sets) == 0:
        return 0
    return math.prod(len(s) for s in sets)


# ---------------------------
# Permutations
# ---------------------------

def _resolve_size(sequence: Sequence[T], size: Optional[int]) -> int:
    if not size:
        return len(sequence)
    if size < 0:
        raise ValueError(f"size must be >= 0: {size}")
    return size


def iter_permutations(sequence: Sequence[T], size: Optional[int] = None) -> Iterator[List[T]]:
    if len(sequence) == 0:
        return
    size = _resolve_size(sequence, size)

    items = list(sequence)
    stack: List[Tuple[List[T], List[T]]] = [
        ([items[i]], items[:i] + items[i + 1:]) for i in range(len(items))
    ]

    while stack:
        current, remaining = stack.pop()
        if len(current) == size:
            yield list(current)
            continue
        # remove by position, so repeated values each keep their own slot
        for i in range(len(remaining)):
            stack.append((current + [remaining[i]], remaining[:i] + remaining[i + 1:]))


def permutations(sequence: Sequence[T], size: Optional[int] = None) -> List[List[T]]:
    """
    All `size`-length orderings of `sequence` (default size: len(sequence)).

    Duplicated values are not collapsed: ['a', 'a'] gives two ['a', 'a'] results.
    A size larger than the sequence gives no results.
    """
    return list(iter_permutations(sequence, size))


def permutation_count(n: int, size: Optional[int] = None) -> int:
    """n! / (n - size)!, 0 when size > n."""
    if n <= 0:
        return 0
    if not size:
        size = n
    if size < 0:
        raise ValueError(f"size must be >= 0: {size}")
    if size > n:
        return 0
    return math.perm(n, size)

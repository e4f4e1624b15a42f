# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Cartesian expansion of parameter sets into request variants."""

from __future__ import annotations

import itertools
from collections.abc import Iterator, Mapping
from typing import Any

_SCALARS = (str, int, float, bool)


def _candidate_lists(parameters: Mapping[str, Any] | None) -> list[tuple[str, list[str]]]:
    if not parameters:
        return []
    if not isinstance(parameters, Mapping):
        raise ValueError(f"Parameter set must be a mapping, got {type(parameters).__name__}")

    columns: list[tuple[str, list[str]]] = []
    for key, values in parameters.items():
        if not isinstance(values, (list, tuple)):
            raise ValueError(f"Parameter {key!r} must be a list of values, got {type(values).__name__}")
        for value in values:
            if value is not None and not isinstance(value, _SCALARS):
                raise ValueError(f"Parameter {key!r} contains a non-scalar value: {value!r}")
        if not values:
            continue
        columns.append((str(key), ["" if value is None else str(value) for value in values]))
    return columns


def generate_combinations(parameters: Mapping[str, Any] | None) -> Iterator[dict[str, str]]:
    """
    Lazily yield every combination of parameter values.

    Order matches nested loops over the keys in insertion order with the last key
    varying fastest. Keys with empty value lists are ignored; an empty or missing
    mapping yields a single empty combination.
    """
    columns = _candidate_lists(parameters)
    if not columns:
        yield {}
        return
    keys = [key for key, _ in columns]
    for values in itertools.product(*(candidates for _, candidates in columns)):
        yield dict(zip(keys, values))


def count_combinations(parameters: Mapping[str, Any] | None) -> int:
    total = 1
    for _, candidates in _candidate_lists(parameters):
        total *= len(candidates)
    return total


__all__ = ["count_combinations", "generate_combinations"]

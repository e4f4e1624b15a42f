# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import types

import pytest

from apirunner.jobs.combinator import count_combinations, generate_combinations


def test_last_key_varies_fastest():
    combos = list(generate_combinations({"a": ["1", "2"], "b": ["x", "y"]}))
    assert combos == [
        {"a": "1", "b": "x"},
        {"a": "1", "b": "y"},
        {"a": "2", "b": "x"},
        {"a": "2", "b": "y"},
    ]


def test_empty_inputs_yield_single_empty_combination():
    assert list(generate_combinations({})) == [{}]
    assert list(generate_combinations(None)) == [{}]
    assert list(generate_combinations({"a": []})) == [{}]


def test_empty_lists_are_skipped():
    assert list(generate_combinations({"a": [], "b": ["1", "2"]})) == [{"b": "1"}, {"b": "2"}]
    assert count_combinations({"a": [], "b": ["1", "2"], "c": ["x", "y", "z"]}) == 6


def test_generation_is_lazy():
    gen = generate_combinations({"a": [str(i) for i in range(1000)], "b": [str(i) for i in range(1000)]})
    assert isinstance(gen, types.GeneratorType)
    assert next(gen) == {"a": "0", "b": "0"}
    assert next(gen) == {"a": "0", "b": "1"}


def test_scalars_are_stringified():
    assert list(generate_combinations({"n": [1, 2.5, True]})) == [{"n": "1"}, {"n": "2.5"}, {"n": "True"}]


@pytest.mark.parametrize(
    "parameters",
    [
        {"a": "not-a-list"},
        {"a": [{"nested": 1}]},
        {"a": [["x"]]},
    ],
)
def test_malformed_parameters_raise(parameters):
    with pytest.raises(ValueError):
        list(generate_combinations(parameters))
    with pytest.raises(ValueError):
        count_combinations(parameters)

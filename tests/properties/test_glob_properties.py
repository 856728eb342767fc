from hypothesis import given, strategies as st

from pollwatch._glob import compile_glob, expand_braces

# Literal text: no braces, commas, escapes or wildcards
literal = st.text(alphabet="abcxyz./_-0123456789", max_size=8)
alternatives = st.lists(literal, min_size=1, max_size=5)


@given(text=literal)
def test_literal_patterns_expand_to_themselves(text: str) -> None:
    assert expand_braces(text) == [text]


@given(prefix=literal, alts=alternatives, suffix=literal)
def test_single_group_expands_to_each_alternative(
    prefix: str, alts: list[str], suffix: str
) -> None:
    pattern = f"{prefix}{{{','.join(alts)}}}{suffix}"
    expected = list(dict.fromkeys(f"{prefix}{alt}{suffix}" for alt in alts))
    assert expand_braces(pattern) == expected


@given(first=alternatives, second=alternatives)
def test_two_groups_produce_the_product(first: list[str], second: list[str]) -> None:
    pattern = f"{{{','.join(first)}}}/{{{','.join(second)}}}"
    expected = {f"{a}/{b}" for a in first for b in second}

    expanded = expand_braces(pattern)

    assert set(expanded) == expected
    assert len(expanded) == len(expected)


@given(alts=alternatives)
def test_nesting_a_group_does_not_change_the_result(alts: list[str]) -> None:
    flat = f"x{{{','.join(alts)}}}"
    nested = f"x{{{{{','.join(alts)}}}}}"
    assert expand_braces(nested) == expand_braces(flat)


@given(alts=alternatives)
def test_compiled_patterns_match_the_expansion(alts: list[str]) -> None:
    pattern = f"src/{{{','.join(alts)}}}.rs"
    assert list(compile_glob(pattern).patterns) == expand_braces(pattern)

"""Shared Hypothesis strategies and fixtures for the test suite.

Provides reusable strategies for generating messy tables and numeric
columns, plus small hand-written tables used across test modules.
"""

from __future__ import annotations

import pytest
from hypothesis import strategies as st

from tableprep.models import Table


# ---------------------------------------------------------------------------
# messy_tables: generates Tables with controlled messiness
# ---------------------------------------------------------------------------


_WORDS = ["red", "blue", "green", "  Red ", "BLUE", "other", ""]


@st.composite
def messy_tables(
    draw: st.DrawFn,
    min_rows: int = 1,
    max_rows: int = 30,
    max_numeric: int = 3,
    max_string: int = 2,
) -> Table:
    """Generate a Table with missing cells, duplicates, outliers and
    whitespace-padded strings.

    Parameters
    ----------
    draw : hypothesis draw function
    min_rows, max_rows : row count bounds before duplicates are injected
    max_numeric, max_string : bounds on the number of columns of each kind

    Returns
    -------
    Table with a realistic mix of data quality issues.
    """
    n_rows = draw(st.integers(min_value=min_rows, max_value=max_rows))
    n_numeric = draw(st.integers(min_value=1, max_value=max_numeric))
    n_string = draw(st.integers(min_value=0, max_value=max_string))

    numbers = st.one_of(
        st.integers(min_value=-1000, max_value=1000),
        st.floats(min_value=-1e4, max_value=1e4, allow_nan=False, allow_infinity=False),
    )
    columns = [f"num_{i}" for i in range(n_numeric)] + [f"str_{i}" for i in range(n_string)]

    rows = []
    for _ in range(n_rows):
        row = {}
        for col in columns:
            if col.startswith("num_"):
                row[col] = draw(st.one_of(st.none(), numbers))
            else:
                row[col] = draw(st.one_of(st.none(), st.sampled_from(_WORDS)))
        rows.append(row)

    # --- Inject duplicate rows ---------------------------------------------
    if draw(st.booleans()) and rows:
        picks = draw(
            st.lists(st.integers(min_value=0, max_value=len(rows) - 1), min_size=1, max_size=3)
        )
        rows.extend(dict(rows[i]) for i in picks)

    # --- Inject an outlier ---------------------------------------------------
    if draw(st.booleans()) and rows:
        r = draw(st.integers(min_value=0, max_value=len(rows) - 1))
        rows[r] = {**rows[r], "num_0": draw(st.sampled_from([1e7, -1e7]))}

    return Table(columns=tuple(columns), rows=tuple(rows))


# ---------------------------------------------------------------------------
# numeric_values: lists of plain numbers with optional gaps
# ---------------------------------------------------------------------------


@st.composite
def numeric_values(
    draw: st.DrawFn, min_size: int = 1, max_size: int = 40, allow_none: bool = True
) -> list:
    """Generate a list of moderate-magnitude numbers, optionally with None gaps.

    At least one entry is always a number.
    """
    numbers = st.one_of(
        st.integers(min_value=-10_000, max_value=10_000),
        st.floats(min_value=-1e4, max_value=1e4, allow_nan=False, allow_infinity=False),
    )
    first = draw(numbers)
    element = st.one_of(st.none(), numbers) if allow_none else numbers
    rest = draw(st.lists(element, min_size=min_size - 1, max_size=max_size - 1))
    return [first] + rest


def column_table(name: str, values: list) -> Table:
    """Single-column table from a list of cells."""
    return Table(columns=(name,), rows=tuple({name: v} for v in values))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def people_table() -> Table:
    """Small mixed-type table with a classification target."""
    return Table.from_records(
        [
            {"Name": "  Alice ", "Age": 30, "City": "NYC", "Income": 50000, "Bought": "yes"},
            {"Name": "Bob", "Age": 25, "City": "LA", "Income": 42000, "Bought": "no"},
            {"Name": "Carol", "Age": None, "City": "NYC", "Income": 61000, "Bought": "yes"},
            {"Name": "Dan", "Age": 41, "City": "SF", "Income": None, "Bought": "no"},
            {"Name": "Bob", "Age": 25, "City": "LA", "Income": 42000, "Bought": "no"},
            {"Name": "Eve", "Age": 35, "City": "LA", "Income": 58000, "Bought": "yes"},
        ]
    )


@pytest.fixture
def regression_table() -> Table:
    """Forty rows where ``y = 2*x1 + 3*x2 + 1`` exactly."""
    rows = []
    for i in range(40):
        x1 = i
        x2 = (i * 7) % 11
        rows.append({"x1": x1, "x2": x2, "y": 2 * x1 + 3 * x2 + 1})
    return Table.from_records(rows)

"""
data_cleaning.py
================
Functions for loading and cleaning the raw school and county CSV files.

Usage
-----
    from nys_schools.data_cleaning import load_schools, load_counties
    from nys_schools.data_cleaning import clean_schools, clean_counties

    schools  = clean_schools(load_schools())
    counties = clean_counties(load_counties())
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from .exceptions import DataLoadError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parents[1]
SCHOOLS_PATH = ROOT / "data" / "raw" / "nys_schools.csv"
COUNTIES_PATH = ROOT / "data" / "raw" / "nys_acs.csv"

# ---------------------------------------------------------------------------
# Missing-value encodings
# ---------------------------------------------------------------------------
MISSING_SENTINELS = (-99, -99.0, "-99")

# ---------------------------------------------------------------------------
# Column groups (handy references for downstream modules)
# ---------------------------------------------------------------------------
JOIN_KEYS = ["county_name", "year"]

SCORE_COLS = ["mean_ela_score", "mean_math_score"]

LUNCH_COLS = ["per_free_lunch", "per_reduced_lunch"]

SCHOOL_NUMERIC_COLS = ["year", "total_enroll"] + SCORE_COLS + LUNCH_COLS + ["per_lep"]

COUNTY_NUMERIC_COLS = [
    "year",
    "median_household_income",
    "county_per_poverty",
    "county_per_bach",
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_raw(path: str | Path) -> pd.DataFrame:
    """Read a delimited file and return a DataFrame with inferred dtypes.

    Raises
    ------
    DataLoadError
        If the file cannot be opened or is not a delimited table.
    """
    path = Path(path)
    logger.info("Loading raw data from %s", path)
    try:
        df = pd.read_csv(path)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise DataLoadError(f"Cannot read table from {path}: {exc}") from exc

    if df.shape[1] == 0:
        raise DataLoadError(f"No columns found in {path}")

    logger.info("Loaded %d rows × %d columns", *df.shape)
    return df


def load_schools(path: str | Path = SCHOOLS_PATH) -> pd.DataFrame:
    """Load the school-by-year test score file."""
    return load_raw(path)


def load_counties(path: str | Path = COUNTIES_PATH) -> pd.DataFrame:
    """Load the county-by-year income / poverty file."""
    return load_raw(path)


def sanitize(df: pd.DataFrame, sentinels=MISSING_SENTINELS) -> pd.DataFrame:
    """Replace sentinel codes and empty strings with ``NaN`` in every column.

    Applying it twice gives the same frame as applying it once.
    """
    df = df.copy()
    for col in df.columns:
        series = df[col]
        mask = series.isin(list(sentinels))
        if series.dtype == object or pd.api.types.is_string_dtype(series):
            mask |= series.astype("string").str.strip().eq("").fillna(False).astype(bool)
        if mask.any():
            df[col] = series.mask(mask, np.nan)
    return df


def clean_schools(df: pd.DataFrame) -> pd.DataFrame:
    """Apply the cleaning pipeline to the raw school table.

    Steps
    -----
    1. Standardise column names (lower-case, strip whitespace).
    2. Replace ``-99`` / empty-string sentinels with ``NaN``.
    3. Coerce numeric columns.
    4. Standardise the join keys.
    5. Drop fully-duplicate rows, sort and reset the index.
    """
    return _clean(df, SCHOOL_NUMERIC_COLS, sort_by=JOIN_KEYS + ["school_cd"], label="schools")


def clean_counties(df: pd.DataFrame) -> pd.DataFrame:
    """Apply the same cleaning pipeline to the raw county table."""
    return _clean(df, COUNTY_NUMERIC_COLS, sort_by=JOIN_KEYS, label="counties")


def missing_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Return a DataFrame summarising missing values per column.

    Columns returned: ``missing_count``, ``missing_pct``, ``dtype``.
    """
    missing = df.isnull().sum()
    result = pd.DataFrame(
        {
            "missing_count": missing,
            "missing_pct": (missing / len(df) * 100).round(2),
            "dtype": df.dtypes,
        }
    )
    return result[result["missing_count"] > 0].sort_values("missing_pct", ascending=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clean(df: pd.DataFrame, numeric_cols: list[str], sort_by: list[str], label: str) -> pd.DataFrame:
    df = df.copy()

    # 1. Standardise column names
    df.columns = df.columns.str.strip().str.lower()
    logger.info("[%s] Step 1 — columns standardised", label)

    # 2. Sentinels
    df = sanitize(df)
    logger.info("[%s] Step 2 — sentinel values replaced", label)

    # 3. Coerce numerics
    numeric_present = [c for c in numeric_cols if c in df.columns]
    for col in numeric_present:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    logger.info("[%s] Step 3 — numeric coercion done (%d cols)", label, len(numeric_present))

    # 4. Join keys
    if "county_name" in df.columns:
        df["county_name"] = df["county_name"].astype("string").str.strip()
    if "year" in df.columns:
        df["year"] = df["year"].round().astype("Int64")

    # 5. Duplicates, order
    before = len(df)
    df = df.drop_duplicates()
    logger.info("[%s] Step 5 — removed %d duplicate rows", label, before - len(df))

    present = [c for c in sort_by if c in df.columns]
    if present:
        df = df.sort_values(present, kind="mergesort")
    df = df.reset_index(drop=True)

    logger.info("[%s] Cleaning complete — %d rows × %d columns", label, *df.shape)
    return df

"""
feature_engineering.py
======================
Derives analysis-ready features from the cleaned school and county tables.

Usage
-----
    from nys_schools.feature_engineering import (
        engineer_school_features,
        engineer_county_features,
    )

    schools  = engineer_school_features(clean_schools_df)
    counties = engineer_county_features(clean_counties_df)
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from .data_cleaning import LUNCH_COLS, SCORE_COLS
from .exceptions import DomainError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tiering defaults
# ---------------------------------------------------------------------------
TIER_LEVELS = ["low", "medium", "high"]
TIER_QUANTILES = (0.33, 0.66)

# "pooled": cutoffs over every year at once; "per-year": cutoffs within each year
TIER_SCOPES = ("pooled", "per-year")
TIER_SCOPE = "pooled"

Z_SCORE_COLS = {"mean_ela_score": "z_ela", "mean_math_score": "z_math"}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def engineer_county_features(df: pd.DataFrame, tier_scope: str = TIER_SCOPE) -> pd.DataFrame:
    """Run the county feature pipeline.

    New columns added
    -----------------
    ``poverty_tier`` – low / medium / high, from income tertiles
    """
    df = add_poverty_tier(df, tier_scope=tier_scope)
    logger.info("County features complete — %d rows × %d columns", *df.shape)
    return df


def engineer_school_features(df: pd.DataFrame, tier_scope: str = TIER_SCOPE) -> pd.DataFrame:
    """Run the school feature pipeline.

    New columns added
    -----------------
    Normalised scores (per year)
        ``z_ela``, ``z_math``

    Lunch subsidy
        ``lunch_count`` – students on free or reduced-price lunch
        ``per_lunch``   – fraction on free or reduced-price lunch
        ``subsidy_tier`` – low / medium / high, from ``per_lunch`` tertiles
    """
    df = add_score_zscores(df)
    logger.info("Step 1 — per-year z-scores created")

    df = add_lunch_subsidy(df)
    logger.info("Step 2 — lunch subsidy count / percentage created")

    df = add_subsidy_tier(df, tier_scope=tier_scope)
    logger.info("Step 3 — subsidy tier created")

    logger.info("School features complete — %d rows × %d columns", *df.shape)
    return df


def tier_cutoffs(values: pd.Series, quantiles: Sequence[float] = TIER_QUANTILES) -> tuple[float, float]:
    """Return the (lower, upper) tertile cutoffs of ``values``, skipping NaN."""
    lower, upper = pd.to_numeric(values, errors="coerce").astype(float).quantile(list(quantiles))
    return float(lower), float(upper)


def tertile_tier(
    values: pd.Series,
    invert: bool = False,
    groups: pd.Series | None = None,
    quantiles: Sequence[float] = TIER_QUANTILES,
) -> pd.Series:
    """Bucket ``values`` into three ordered tiers at the tertile cutoffs.

    ``v < p33`` falls in the bottom bucket, ``p33 <= v < p66`` in the middle
    and ``v >= p66`` in the top one.  With ``invert=True`` the top bucket of
    the value scale is labelled ``"low"`` (income → poverty).

    Parameters
    ----------
    values:
        Numeric series to bucket.  Missing values get a missing tier.
    invert:
        Label the highest values ``"low"`` instead of ``"high"``.
    groups:
        Optional series aligned with ``values``; cutoffs are then computed
        within each group rather than pooled over the whole series.
    """
    values = pd.to_numeric(values, errors="coerce").astype(float)

    if groups is None:
        lower, upper = tier_cutoffs(values, quantiles)
        lower = pd.Series(lower, index=values.index)
        upper = pd.Series(upper, index=values.index)
    else:
        grouped = values.groupby(groups)
        lower = grouped.transform(lambda s: s.quantile(quantiles[0]))
        upper = grouped.transform(lambda s: s.quantile(quantiles[1]))

    position = np.select(
        [values < lower, values < upper, values >= upper],
        [0, 1, 2],
        default=-1,
    )
    position = pd.Series(position, index=values.index).where(values.notna(), -1)
    if invert:
        position = position.where(position < 0, 2 - position)

    return pd.Series(
        pd.Categorical.from_codes(position.to_numpy(), categories=TIER_LEVELS, ordered=True),
        index=values.index,
    )


def add_poverty_tier(df: pd.DataFrame, tier_scope: str = TIER_SCOPE) -> pd.DataFrame:
    """Add ``poverty_tier``: the lowest-income tertile is ``"high"`` poverty."""
    _require(df, ["median_household_income"], "county table")
    df = df.copy()
    income = df["median_household_income"]

    groups = _tier_groups(df, tier_scope)
    if groups is None:
        lower, upper = tier_cutoffs(income)
        logger.info("Poverty tier income cutoffs (pooled): %.0f / %.0f", lower, upper)
    df["poverty_tier"] = tertile_tier(income, invert=True, groups=groups)
    return df


def add_score_zscores(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``z_ela`` and ``z_math`` normalised within each year.

    Uses the sample standard deviation.  A year with fewer than two scores
    or no spread yields missing z-scores for that year.
    """
    _require(df, ["year"] + SCORE_COLS, "school table")
    df = df.copy()

    for raw_col, z_col in Z_SCORE_COLS.items():
        scores = pd.to_numeric(df[raw_col], errors="coerce").astype(float)
        by_year = scores.groupby(df["year"])
        mean = by_year.transform("mean")
        std = by_year.transform(lambda s: s.std(ddof=1)).replace(0, np.nan)
        df[z_col] = (scores - mean) / std

    return df


def add_lunch_subsidy(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``per_lunch`` (free + reduced fraction) and ``lunch_count``."""
    _require(df, ["total_enroll"] + LUNCH_COLS, "school table")
    df = df.copy()

    df["per_lunch"] = df["per_free_lunch"] + df["per_reduced_lunch"]
    df["lunch_count"] = df["per_lunch"] * df["total_enroll"]
    return df


def add_subsidy_tier(df: pd.DataFrame, tier_scope: str = TIER_SCOPE) -> pd.DataFrame:
    """Add ``subsidy_tier`` from tertiles of ``per_lunch``."""
    if "per_lunch" not in df.columns:
        df = add_lunch_subsidy(df)
    else:
        df = df.copy()

    groups = _tier_groups(df, tier_scope)
    if groups is None:
        lower, upper = tier_cutoffs(df["per_lunch"])
        logger.info("Subsidy tier cutoffs (pooled): %.3f / %.3f", lower, upper)
    df["subsidy_tier"] = tertile_tier(df["per_lunch"], groups=groups)
    return df


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require(df: pd.DataFrame, columns: Sequence[str], table: str) -> None:
    for col in columns:
        if col not in df.columns:
            raise DomainError(col, table)


def _tier_groups(df: pd.DataFrame, tier_scope: str) -> pd.Series | None:
    if tier_scope not in TIER_SCOPES:
        raise ValueError(f"Unknown tier scope {tier_scope!r}; expected one of {TIER_SCOPES}")
    if tier_scope == "pooled":
        return None
    _require(df, ["year"], "table")
    return df["year"]

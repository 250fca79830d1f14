"""
aggregation.py
==============
Summary tables built from the merged school / county records.

Every function here is pure: it takes the merged DataFrame and returns a new
summary table.  A selection with no contributing rows raises
:class:`~nys_schools.exceptions.EmptyGroupError`; the caller decides whether
to render an empty table or skip it.

Usage
-----
    from nys_schools.aggregation import county_summary, tier_time_series

    by_county = county_summary(merged, year=2016)
    trends    = tier_time_series(merged, tier_col="poverty_tier")
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import pandas as pd

from .exceptions import DomainError, EmptyGroupError

logger = logging.getLogger(__name__)

TIER_COLS = ("poverty_tier", "subsidy_tier")
Z_COLS = ["z_ela", "z_math"]

CORRELATION_COLS = [
    "county_per_poverty",
    "median_household_income",
    "per_lunch",
    "z_ela",
    "z_math",
]


# ---------------------------------------------------------------------------
# Generic two-stage aggregation
# ---------------------------------------------------------------------------

def two_stage_mean(
    df: pd.DataFrame,
    group_keys: Sequence[str],
    value_cols: Sequence[str],
    unit_key: str = "county_name",
) -> pd.DataFrame:
    """Average ``value_cols`` per unit first, then across units per group.

    Each unit (county by default) counts once in its group, however many
    rows it contributes.  Rows with a missing group key or unit are dropped
    first; missing values are skipped at both stages.

    Returns
    -------
    pd.DataFrame with ``group_keys``, ``value_cols`` and ``n_units``.
    """
    group_keys = list(group_keys)
    value_cols = list(value_cols)
    _require(df, group_keys + [unit_key] + value_cols)

    subset = df.dropna(subset=group_keys + [unit_key])
    if subset.empty:
        raise EmptyGroupError(f"No rows with complete {group_keys + [unit_key]} keys")

    unit_means = (
        subset.groupby(group_keys + [unit_key], observed=True)[value_cols]
        .mean()
        .reset_index()
    )
    result = (
        unit_means.groupby(group_keys, observed=True)
        .agg(**{c: (c, "mean") for c in value_cols}, n_units=(unit_key, "nunique"))
        .reset_index()
    )
    return result


# ---------------------------------------------------------------------------
# County summaries
# ---------------------------------------------------------------------------

def county_summary(merged: pd.DataFrame, year: int | None = None) -> pd.DataFrame:
    """One row per county with enrollment-weighted lunch subsidy.

    ``per_lunch_subsidy`` is ``sum(lunch_count) / sum(total_enroll)`` over
    the schools with a known ``lunch_count``, not a mean of school rates.

    Parameters
    ----------
    merged:
        Output of :func:`nys_schools.merging.merge_school_county`.
    year:
        Restrict to a single year.  ``None`` pools every year.
    """
    _require(merged, ["county_name", "year", "total_enroll", "lunch_count", "county_per_poverty"])
    subset = _select_year(merged, year).dropna(subset=["county_name"])
    if subset.empty:
        raise EmptyGroupError(f"No school rows for year {year}")

    summary = _weighted_summary(subset, ["county_name"])
    logger.info("County summary (year=%s): %d counties", year, len(summary))
    return summary


def extreme_counties(
    summary: pd.DataFrame,
    n: int = 5,
    rank_col: str = "county_per_poverty",
) -> tuple[list[str], list[str]]:
    """Return the ``n`` counties with the lowest and highest ``rank_col``.

    Ranking is a stable sort on ``rank_col`` alone, so ties keep the order of
    ``summary``.  Counties with a missing ``rank_col`` are not ranked.
    """
    ranked = summary.dropna(subset=[rank_col])
    if ranked.empty:
        raise EmptyGroupError(f"No counties with a known {rank_col}")
    lowest = ranked.sort_values(rank_col, kind="mergesort")["county_name"].tolist()
    highest = ranked.sort_values(rank_col, ascending=False, kind="mergesort")["county_name"].tolist()
    return lowest[:n], highest[:n]


def extremes_summary(merged: pd.DataFrame, year: int | None = None, n: int = 5) -> pd.DataFrame:
    """Weighted statistics and mean z-scores for the poverty extremes.

    One row for the ``n`` lowest-poverty counties and one for the ``n``
    highest-poverty counties.
    """
    by_county = county_summary(merged, year=year)
    lowest, highest = extreme_counties(by_county, n=n)

    subset = _select_year(merged, year)
    frames = []
    for label, names in (("lowest_poverty", lowest), ("highest_poverty", highest)):
        group = subset[subset["county_name"].isin(names)].assign(group=label)
        frames.append(group)

    result = _weighted_summary(pd.concat(frames, ignore_index=True), ["group"], sort=False)
    result["counties"] = result["group"].map(
        {"lowest_poverty": ", ".join(lowest), "highest_poverty": ", ".join(highest)}
    )
    return result


# ---------------------------------------------------------------------------
# Tier time series
# ---------------------------------------------------------------------------

def tier_time_series(
    merged: pd.DataFrame,
    tier_col: str = "poverty_tier",
    tiers: Iterable[str] | None = None,
) -> pd.DataFrame:
    """Mean z-scores per (tier, year), with county as the unit of analysis.

    School z-scores are first averaged within each county-year, then those
    county means are averaged within each tier-year.

    Parameters
    ----------
    tier_col:
        ``"poverty_tier"`` or ``"subsidy_tier"``.
    tiers:
        Optional subset of tier labels to keep.
    """
    if tier_col not in TIER_COLS:
        raise ValueError(f"tier_col must be one of {TIER_COLS}, got {tier_col!r}")

    data = merged
    if tiers is not None:
        tiers = list(tiers)
        _require(merged, [tier_col])
        data = merged[merged[tier_col].isin(tiers)]
        if data.empty:
            raise EmptyGroupError(f"No rows for {tier_col} in {tiers}")

    result = two_stage_mean(data, [tier_col, "year"], Z_COLS, unit_key="county_name")
    logger.info("%s time series: %d tier-year groups", tier_col, len(result))
    return result.sort_values([tier_col, "year"]).reset_index(drop=True)


def pivot_tier_series(series: pd.DataFrame, value_col: str, tier_col: str = "poverty_tier") -> pd.DataFrame:
    """Pivot a tier time series to a (year × tier) wide table."""
    return series.pivot_table(index="year", columns=tier_col, values=value_col, observed=True)


# ---------------------------------------------------------------------------
# Correlations
# ---------------------------------------------------------------------------

def county_year_means(merged: pd.DataFrame, cols: Sequence[str] = CORRELATION_COLS) -> pd.DataFrame:
    """Average ``cols`` within each county-year (county is the unit)."""
    cols = [c for c in cols if c in merged.columns]
    subset = merged.dropna(subset=["county_name", "year"])
    if subset.empty:
        raise EmptyGroupError("No rows with a county and year")
    return subset.groupby(["county_name", "year"])[cols].mean().reset_index()


def score_correlations(merged: pd.DataFrame, cols: Sequence[str] = CORRELATION_COLS) -> pd.DataFrame:
    """Pearson correlations between socioeconomic indicators and z-scores."""
    return correlation_matrix(county_year_means(merged, cols), cols)


def correlation_matrix(means: pd.DataFrame, cols: Sequence[str] = CORRELATION_COLS) -> pd.DataFrame:
    """Pearson correlations over an existing county-year means table."""
    present = [c for c in cols if c in means.columns]
    if means.empty or not present:
        raise EmptyGroupError("No county-year means to correlate")
    return means[present].corr()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require(df: pd.DataFrame, columns: Sequence[str]) -> None:
    for col in columns:
        if col not in df.columns:
            raise DomainError(col, "merged table")


def _select_year(df: pd.DataFrame, year: int | None) -> pd.DataFrame:
    if year is None:
        return df
    return df[(df["year"] == year).fillna(False).astype(bool)]


def _weighted_summary(df: pd.DataFrame, keys: list[str], sort: bool = True) -> pd.DataFrame:
    df = df.assign(
        subsidy_enroll=df["total_enroll"].where(df["lunch_count"].notna()),
    )
    z_cols = [c for c in Z_COLS if c in df.columns]

    agg = {
        "total_enroll": ("total_enroll", lambda s: s.sum(min_count=1)),
        "lunch_count": ("lunch_count", lambda s: s.sum(min_count=1)),
        "subsidy_enroll": ("subsidy_enroll", lambda s: s.sum(min_count=1)),
        "county_per_poverty": ("county_per_poverty", "mean"),
        "n_schools": ("total_enroll", "size"),
    }
    agg.update({c: (c, "mean") for c in z_cols})

    result = df.groupby(keys, sort=sort).agg(**agg).reset_index()
    result["per_lunch_subsidy"] = result["lunch_count"] / result["subsidy_enroll"]
    result = result.drop(columns="subsidy_enroll")

    ordered = keys + ["total_enroll", "lunch_count", "per_lunch_subsidy", "county_per_poverty"] + z_cols + ["n_schools"]
    return result[ordered]

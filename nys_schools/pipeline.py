"""
pipeline.py
===========
Runs the whole report pipeline once, top to bottom:

    load → clean → engineer features → merge → aggregate

Usage
-----
    from nys_schools.pipeline import run_pipeline

    result = run_pipeline()
    result.county_summary.head()

or, to also write the tables and figures under ``outputs/``::

    python -m nys_schools.pipeline
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

import matplotlib.pyplot as plt
import pandas as pd

from . import aggregation, plotting
from .data_cleaning import (
    COUNTIES_PATH,
    ROOT,
    SCHOOLS_PATH,
    clean_counties,
    clean_schools,
    load_counties,
    load_schools,
)
from .exceptions import EmptyGroupError
from .feature_engineering import TIER_SCOPE, engineer_county_features, engineer_school_features
from .merging import merge_school_county

logger = logging.getLogger(__name__)

TABLES_DIR = ROOT / "outputs" / "tables"


@dataclass
class PipelineResult:
    """Every table produced by one run."""

    schools: pd.DataFrame
    counties: pd.DataFrame
    merged: pd.DataFrame
    year: int | None = None
    county_summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    extremes: pd.DataFrame = field(default_factory=pd.DataFrame)
    poverty_series: pd.DataFrame = field(default_factory=pd.DataFrame)
    subsidy_series: pd.DataFrame = field(default_factory=pd.DataFrame)
    county_year: pd.DataFrame = field(default_factory=pd.DataFrame)
    correlations: pd.DataFrame = field(default_factory=pd.DataFrame)

    def tables(self) -> dict[str, pd.DataFrame]:
        """Summary tables keyed by output file stem."""
        return {
            "county_summary": self.county_summary,
            "poverty_extremes": self.extremes,
            "poverty_tier_series": self.poverty_series,
            "subsidy_tier_series": self.subsidy_series,
            "county_year_means": self.county_year,
            "score_correlations": self.correlations,
        }


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Log which stage a fatal error came from, then let it propagate."""
    logger.info("Stage %s — start", name)
    try:
        yield
    except Exception:
        logger.exception("Stage %s failed", name)
        raise
    logger.info("Stage %s — done", name)


def _recoverable(name: str, func: Callable[[], pd.DataFrame]) -> pd.DataFrame:
    try:
        return func()
    except EmptyGroupError as exc:
        logger.warning("%s is empty: %s", name, exc)
        return pd.DataFrame()


def run_pipeline(
    schools_path: str | Path = SCHOOLS_PATH,
    counties_path: str | Path = COUNTIES_PATH,
    year: int | None = None,
    tier_scope: str = TIER_SCOPE,
    n_extremes: int = 5,
) -> PipelineResult:
    """Run the pipeline end to end and return every table.

    Parameters
    ----------
    year:
        Year for the county snapshot tables.  ``None`` uses the latest year
        in the merged data.
    tier_scope:
        ``"pooled"`` or ``"per-year"`` tertile cutoffs for both tiers.
    n_extremes:
        Counties per group in the poverty extremes table.
    """
    with stage("load"):
        raw_schools = load_schools(schools_path)
        raw_counties = load_counties(counties_path)

    with stage("sanitize"):
        schools = clean_schools(raw_schools)
        counties = clean_counties(raw_counties)

    with stage("features"):
        schools = engineer_school_features(schools, tier_scope=tier_scope)
        counties = engineer_county_features(counties, tier_scope=tier_scope)

    with stage("merge"):
        merged = merge_school_county(schools, counties)

    result = PipelineResult(schools=schools, counties=counties, merged=merged)

    with stage("aggregate"):
        if year is None and merged["year"].notna().any():
            year = int(merged["year"].max())
        result.year = year

        result.county_summary = _recoverable(
            "county summary", lambda: aggregation.county_summary(merged, year=year)
        )
        result.extremes = _recoverable(
            "poverty extremes", lambda: aggregation.extremes_summary(merged, year=year, n=n_extremes)
        )
        result.poverty_series = _recoverable(
            "poverty tier series", lambda: aggregation.tier_time_series(merged, "poverty_tier")
        )
        result.subsidy_series = _recoverable(
            "subsidy tier series", lambda: aggregation.tier_time_series(merged, "subsidy_tier")
        )
        result.county_year = _recoverable(
            "county-year means", lambda: aggregation.county_year_means(merged)
        )
        result.correlations = _recoverable(
            "score correlations", lambda: aggregation.correlation_matrix(result.county_year)
        )

    return result


def write_outputs(
    result: PipelineResult,
    tables_dir: Path = TABLES_DIR,
    figures_dir: Path | None = None,
) -> None:
    """Save every non-empty summary table as CSV and render the figures."""
    tables_dir = Path(tables_dir)
    tables_dir.mkdir(parents=True, exist_ok=True)
    for name, table in result.tables().items():
        if table.empty:
            logger.info("Skipping empty table %s", name)
            continue
        path = tables_dir / f"{name}.csv"
        table.to_csv(path, index=name == "score_correlations")
        logger.info("Saved %s", path)

    figures = []
    if not result.county_year.empty:
        for score in aggregation.Z_COLS:
            figures.append(
                plotting.poverty_vs_scores(
                    result.county_year, score_col=score, save_as=f"poverty_vs_{score}.png", figures_dir=figures_dir
                )
            )
    if not result.county_summary.empty:
        figures.append(
            plotting.county_subsidy_bars(
                result.county_summary,
                title=f"Lunch Subsidy by County ({result.year})",
                save_as="county_lunch_subsidy.png",
                figures_dir=figures_dir,
            )
        )
    for tier_col, series in (("poverty_tier", result.poverty_series), ("subsidy_tier", result.subsidy_series)):
        if series.empty:
            continue
        for score in aggregation.Z_COLS:
            figures.append(
                plotting.tier_trends(
                    series, tier_col=tier_col, score_col=score,
                    save_as=f"{tier_col}_{score}.png", figures_dir=figures_dir,
                )
            )
    if not result.correlations.empty:
        figures.append(
            plotting.correlation_heatmap(result.county_year, save_as="correlations.png", figures_dir=figures_dir)
        )

    for fig in figures:
        plt.close(fig)
    logger.info("Rendered %d figures", len(figures))


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    write_outputs(run_pipeline())


if __name__ == "__main__":
    main()

"""
plotting.py
===========
Notebook-friendly charts for the NYS school / county poverty report.  Every
function takes an aggregation table and returns the ``matplotlib`` ``Figure``
object so callers can further customise or save it.

Usage
-----
    from nys_schools import plots

    fig = plots.poverty_vs_scores(county_year_means(merged))
    fig = plots.county_subsidy_bars(county_summary(merged, year=2016))
    fig = plots.tier_trends(tier_time_series(merged), score_col="z_math")
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import numpy as np
import pandas as pd
import seaborn as sns

from .aggregation import CORRELATION_COLS, correlation_matrix

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
FIGURES_DIR = Path(__file__).resolve().parents[1] / "outputs" / "figures"

PALETTE = "tab10"
STYLE = "whitegrid"
FIGSIZE_WIDE = (14, 6)
FIGSIZE_SQUARE = (10, 8)

TIER_COLORS = {"low": "#55A868", "medium": "#DD8452", "high": "#C44E52"}


def _apply_style() -> None:
    sns.set_theme(context="notebook", style=STYLE, palette=PALETTE, font_scale=1.05)
    plt.rcParams.update(
        {
            "figure.dpi": 110,
            "savefig.dpi": 150,
            "axes.titleweight": "bold",
            "axes.spines.top": False,
            "axes.spines.right": False,
        }
    )


def _save(fig: plt.Figure, filename: Optional[str], figures_dir: Path | None = None) -> None:
    if filename:
        out_dir = Path(figures_dir) if figures_dir is not None else FIGURES_DIR
        out_dir.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_dir / filename, bbox_inches="tight")


def _label(col: str) -> str:
    return col.replace("_", " ").title()


# ---------------------------------------------------------------------------
# 1. Poverty vs. score scatter
# ---------------------------------------------------------------------------

def poverty_vs_scores(
    df: pd.DataFrame,
    score_col: str = "z_ela",
    poverty_col: str = "county_per_poverty",
    hue_col: str | None = "year",
    highlight_counties: Optional[Iterable[str]] = None,
    save_as: str | None = None,
    figures_dir: Path | None = None,
) -> plt.Figure:
    """Scatter plot of county mean z-scores against the poverty rate.

    Parameters
    ----------
    df:
        County-year table, e.g. from
        :func:`nys_schools.aggregation.county_year_means`.
    hue_col:
        Column used to colour the points.  ``None`` disables colouring.
    highlight_counties:
        County names to annotate with a text label.
    """
    _apply_style()
    cols = [poverty_col, score_col, "county_name"] + ([hue_col] if hue_col else [])
    plot_df = df[list(dict.fromkeys(cols))].dropna()
    if hue_col:
        plot_df = plot_df.astype({hue_col: str})

    fig, ax = plt.subplots(figsize=FIGSIZE_SQUARE)
    sns.scatterplot(
        data=plot_df,
        x=poverty_col,
        y=score_col,
        hue=hue_col,
        alpha=0.65,
        s=50,
        ax=ax,
    )

    # Regression line
    if len(plot_df) >= 2:
        x = plot_df[poverty_col].to_numpy(dtype=float)
        y = plot_df[score_col].to_numpy(dtype=float)
        m, b = np.polyfit(x, y, 1)
        x_line = np.linspace(x.min(), x.max(), 200)
        ax.plot(x_line, m * x_line + b, color="black", linewidth=1.5, linestyle="--", label="OLS trend")
        ax.legend()

    if highlight_counties:
        for county in highlight_counties:
            rows = plot_df[plot_df["county_name"] == county]
            for _, row in rows.iterrows():
                ax.annotate(
                    county,
                    xy=(row[poverty_col], row[score_col]),
                    xytext=(6, 0),
                    textcoords="offset points",
                    fontsize=8,
                )

    ax.xaxis.set_major_formatter(mticker.PercentFormatter(xmax=1.0))
    ax.set_xlabel(_label(poverty_col))
    ax.set_ylabel(_label(score_col))
    ax.set_title(f"{_label(score_col)} vs. {_label(poverty_col)}")

    fig.tight_layout()
    _save(fig, save_as, figures_dir)
    return fig


# ---------------------------------------------------------------------------
# 2. County lunch-subsidy bar chart (snapshot)
# ---------------------------------------------------------------------------

def county_subsidy_bars(
    summary: pd.DataFrame,
    metric: str = "per_lunch_subsidy",
    top_n: int = 20,
    ascending: bool = False,
    title: str | None = None,
    save_as: str | None = None,
    figures_dir: Path | None = None,
) -> plt.Figure:
    """Horizontal bar chart ranking counties by a summary metric.

    Parameters
    ----------
    summary:
        Output of :func:`nys_schools.aggregation.county_summary`.
    top_n:
        Number of counties to show.
    """
    _apply_style()
    subset = summary[["county_name", metric]].dropna()
    subset = subset.sort_values(metric, ascending=ascending, kind="mergesort").head(top_n)

    fig, ax = plt.subplots(figsize=(10, max(len(subset), 1) * 0.45 + 1))
    colors = sns.color_palette(PALETTE, len(subset))
    ax.barh(subset["county_name"].astype(str), subset[metric], color=colors)
    if metric.startswith("per_") or metric.startswith("county_per_"):
        ax.xaxis.set_major_formatter(mticker.PercentFormatter(xmax=1.0))
    ax.set_xlabel(_label(metric))
    ax.set_title(title or f"{_label(metric)} by County")
    ax.invert_yaxis()

    fig.tight_layout()
    _save(fig, save_as, figures_dir)
    return fig


# ---------------------------------------------------------------------------
# 3. Tier trends line chart
# ---------------------------------------------------------------------------

def tier_trends(
    series: pd.DataFrame,
    tier_col: str = "poverty_tier",
    score_col: str = "z_ela",
    save_as: str | None = None,
    figures_dir: Path | None = None,
) -> plt.Figure:
    """Line chart of mean z-scores by tier over time.

    ``series`` is the output of
    :func:`nys_schools.aggregation.tier_time_series`.
    """
    _apply_style()
    fig, ax = plt.subplots(figsize=FIGSIZE_WIDE)

    for tier, subset in series.groupby(tier_col, observed=True, sort=True):
        subset = subset.sort_values("year").dropna(subset=[score_col])
        if subset.empty:
            continue
        ax.plot(
            subset["year"].astype(int),
            subset[score_col],
            linewidth=2,
            marker="o",
            markersize=4,
            color=TIER_COLORS.get(str(tier)),
            label=str(tier),
        )

    ax.axhline(0, color="grey", linewidth=1, linestyle=":")
    ax.xaxis.set_major_locator(mticker.MaxNLocator(integer=True))
    ax.set_xlabel("Year")
    ax.set_ylabel(_label(score_col))
    ax.set_title(f"{_label(score_col)} by {_label(tier_col)}")
    ax.legend(title=_label(tier_col), loc="best")

    fig.tight_layout()
    _save(fig, save_as, figures_dir)
    return fig


# ---------------------------------------------------------------------------
# 4. Correlation heatmap
# ---------------------------------------------------------------------------

def correlation_heatmap(
    means: pd.DataFrame,
    cols: Optional[Iterable[str]] = None,
    save_as: str | None = None,
    figures_dir: Path | None = None,
) -> plt.Figure:
    """Lower-triangle heatmap of correlations across county-years.

    Parameters
    ----------
    means:
        County-year table from
        :func:`nys_schools.aggregation.county_year_means`.
    cols:
        Columns to correlate.  Defaults to the poverty, income, subsidy and
        z-score columns present in ``means``.
    """
    _apply_style()
    corr = correlation_matrix(means, list(cols) if cols is not None else CORRELATION_COLS)
    corr = corr.rename(index=_label, columns=_label)

    fig, ax = plt.subplots(figsize=FIGSIZE_SQUARE)
    mask = np.triu(np.ones_like(corr, dtype=bool), k=1)
    sns.heatmap(
        corr,
        mask=mask,
        annot=True,
        fmt=".2f",
        cmap="vlag_r",
        vmin=-1,
        vmax=1,
        square=True,
        linewidths=0.5,
        cbar_kws={"label": "Pearson r", "shrink": 0.8},
        ax=ax,
    )
    ax.tick_params(axis="x", rotation=30)
    ax.set_title(f"Correlation Heatmap — {len(means)} County-Years")
    fig.tight_layout()
    _save(fig, save_as, figures_dir)
    return fig

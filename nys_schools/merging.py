"""
merging.py
==========
Joins school records to county demographics.
"""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from .data_cleaning import JOIN_KEYS
from .exceptions import DomainError

logger = logging.getLogger(__name__)


def merge_school_county(
    schools: pd.DataFrame,
    counties: pd.DataFrame,
    on: Sequence[str] = JOIN_KEYS,
) -> pd.DataFrame:
    """Left-join ``counties`` onto ``schools`` on ``(county_name, year)``.

    Every school row is kept; county attributes are missing where no county
    row matches.  Duplicate county keys are not collapsed, so they fan the
    join out.  A warning is logged when that happens.
    """
    on = list(on)
    for col in on:
        if col not in schools.columns:
            raise DomainError(col, "school table")
        if col not in counties.columns:
            raise DomainError(col, "county table")

    dup_keys = counties.duplicated(subset=on, keep=False)
    if dup_keys.any():
        logger.warning(
            "County table has %d duplicated (%s) keys — join will fan out",
            counties.loc[dup_keys, on].drop_duplicates().shape[0],
            ", ".join(on),
        )

    merged = schools.merge(counties, on=on, how="left", indicator=True)
    unmatched = int((merged["_merge"] == "left_only").sum())
    merged = merged.drop(columns="_merge")

    logger.info(
        "Merged %d school rows with %d county rows → %d rows (%d without county match)",
        len(schools),
        len(counties),
        len(merged),
        unmatched,
    )
    return merged

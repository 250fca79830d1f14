import logging

import pandas as pd
import pytest

from nys_schools.exceptions import DomainError
from nys_schools.merging import merge_school_county


def test_left_join_preserves_school_rows(toy_schools, toy_counties):
    merged = merge_school_county(toy_schools, toy_counties)

    assert len(merged) == len(toy_schools)
    assert merged["school_cd"].tolist() == ["s1", "s2"]
    assert merged["median_household_income"].tolist() == [40000.0, 20000.0]


def test_unmatched_school_gets_missing_county_attributes(toy_schools, toy_counties):
    extra = toy_schools.iloc[[0]].assign(school_cd="s3", county_name="C")
    schools = pd.concat([toy_schools, extra], ignore_index=True)

    merged = merge_school_county(schools, toy_counties)

    assert len(merged) == 3
    row = merged.set_index("school_cd").loc["s3"]
    assert pd.isna(row["median_household_income"])
    assert pd.isna(row["county_per_poverty"])


def test_duplicate_county_keys_fan_out_with_warning(toy_schools, toy_counties, caplog):
    counties = pd.concat([toy_counties, toy_counties.iloc[[0]]], ignore_index=True)

    with caplog.at_level(logging.WARNING, logger="nys_schools.merging"):
        merged = merge_school_county(toy_schools, counties)

    assert len(merged) == 3
    assert "duplicated" in caplog.text


def test_missing_join_key_raises(toy_schools, toy_counties):
    with pytest.raises(DomainError):
        merge_school_county(toy_schools, toy_counties.drop(columns="year"))

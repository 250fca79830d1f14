import numpy as np
import pandas as pd
import pytest

from nys_schools.exceptions import DomainError
from nys_schools.feature_engineering import (
    TIER_LEVELS,
    add_lunch_subsidy,
    add_poverty_tier,
    add_score_zscores,
    add_subsidy_tier,
    engineer_school_features,
    tertile_tier,
    tier_cutoffs,
)


# ---------------------------------------------------------------------------
# Tiering
# ---------------------------------------------------------------------------

def test_tertile_boundaries_go_to_upper_tier():
    values = pd.Series(np.arange(101, dtype=float))
    lower, upper = tier_cutoffs(values)
    assert (lower, upper) == pytest.approx((33.0, 66.0))

    tiers = tertile_tier(values)

    assert tiers[32] == "low"
    assert tiers[33] == "medium"
    assert tiers[65] == "medium"
    assert tiers[66] == "high"


def test_tertile_tier_matches_cutoffs(rng):
    values = pd.Series(rng.normal(50, 10, size=300))
    lower, upper = tier_cutoffs(values)

    tiers = tertile_tier(values)

    expected = np.where(values < lower, "low", np.where(values < upper, "medium", "high"))
    assert (tiers.astype(str).to_numpy() == expected).all()
    assert set(tiers.unique()) == set(TIER_LEVELS)
    assert list(tiers.cat.categories) == TIER_LEVELS
    assert tiers.cat.ordered


def test_tertile_tier_missing_values_stay_missing():
    values = pd.Series([1.0, np.nan, 2.0, 3.0])

    tiers = tertile_tier(values)

    assert pd.isna(tiers[1])
    assert tiers.notna().sum() == 3


def test_tertile_tier_invert_flips_labels():
    values = pd.Series([1.0, 2.0, 3.0])

    assert tertile_tier(values).tolist() == ["low", "medium", "high"]
    assert tertile_tier(values, invert=True).tolist() == ["high", "medium", "low"]


def test_poverty_tier_two_counties(toy_counties):
    df = add_poverty_tier(toy_counties)

    assert df.set_index("county_name")["poverty_tier"].to_dict() == {"A": "low", "B": "high"}


def test_poverty_tier_pooled_vs_per_year():
    counties = pd.DataFrame({
        "county_name": list("xyzxyz"),
        "year": [2015] * 3 + [2016] * 3,
        "median_household_income": [10.0, 20.0, 30.0, 110.0, 120.0, 130.0],
    })

    pooled = add_poverty_tier(counties, tier_scope="pooled")["poverty_tier"].tolist()
    per_year = add_poverty_tier(counties, tier_scope="per-year")["poverty_tier"].tolist()

    assert pooled == ["high", "high", "medium", "medium", "low", "low"]
    assert per_year == ["high", "medium", "low"] * 2


def test_unknown_tier_scope_raises(toy_counties):
    with pytest.raises(ValueError):
        add_poverty_tier(toy_counties, tier_scope="per-county")


def test_poverty_tier_requires_income_column(toy_counties):
    with pytest.raises(DomainError) as excinfo:
        add_poverty_tier(toy_counties.drop(columns="median_household_income"))

    assert excinfo.value.column == "median_household_income"


# ---------------------------------------------------------------------------
# Score normalisation
# ---------------------------------------------------------------------------

def test_zscores_have_zero_mean_unit_sd_per_year(rng):
    n = 60
    df = pd.DataFrame({
        "year": np.repeat([2014, 2015, 2016], n),
        "mean_ela_score": np.concatenate([rng.normal(600 + 20 * i, 15, n) for i in range(3)]),
        "mean_math_score": np.concatenate([rng.normal(620 - 10 * i, 25, n) for i in range(3)]),
    })
    df.loc[[3, 70, 150], "mean_ela_score"] = np.nan

    out = add_score_zscores(df)

    for _, group in out.groupby("year"):
        for col in ("z_ela", "z_math"):
            z = group[col].dropna()
            assert z.mean() == pytest.approx(0.0, abs=1e-9)
            assert z.std(ddof=1) == pytest.approx(1.0)
    assert out.loc[[3, 70, 150], "z_ela"].isna().all()
    assert out["z_math"].notna().all()


def test_zscores_two_school_sample(toy_schools):
    out = add_score_zscores(toy_schools)

    # mean 650, sample sd 50 * sqrt(2)
    assert out["z_ela"].tolist() == pytest.approx([1 / np.sqrt(2), -1 / np.sqrt(2)])
    assert out["z_math"].tolist() == pytest.approx([1 / np.sqrt(2), -1 / np.sqrt(2)])


def test_zscores_single_school_year_is_missing():
    df = pd.DataFrame({
        "year": [2015, 2016, 2016],
        "mean_ela_score": [600.0, 610.0, 630.0],
        "mean_math_score": [600.0, 620.0, 620.0],
    })

    out = add_score_zscores(df)

    assert pd.isna(out.loc[0, "z_ela"])
    # no spread in 2016 math
    assert out.loc[1:, "z_math"].isna().all()
    assert out.loc[1:, "z_ela"].notna().all()


# ---------------------------------------------------------------------------
# Lunch subsidy
# ---------------------------------------------------------------------------

def test_lunch_subsidy_count_and_percentage(toy_schools):
    out = add_lunch_subsidy(toy_schools)

    assert out["per_lunch"].tolist() == pytest.approx([0.2, 0.6])
    assert out["lunch_count"].tolist() == pytest.approx([20.0, 180.0])


def test_lunch_subsidy_propagates_missing(toy_schools):
    toy_schools.loc[0, "per_reduced_lunch"] = np.nan
    toy_schools.loc[1, "total_enroll"] = np.nan

    out = add_lunch_subsidy(toy_schools)

    assert pd.isna(out.loc[0, "per_lunch"])
    assert pd.isna(out.loc[0, "lunch_count"])
    assert out.loc[1, "per_lunch"] == pytest.approx(0.6)
    assert pd.isna(out.loc[1, "lunch_count"])


def test_lunch_subsidy_requires_enrollment(toy_schools):
    with pytest.raises(DomainError):
        add_lunch_subsidy(toy_schools.drop(columns="total_enroll"))


def test_subsidy_tier_pooled(toy_schools):
    out = add_subsidy_tier(toy_schools)

    assert out["subsidy_tier"].tolist() == ["low", "high"]


def test_engineer_school_features_adds_columns(toy_schools):
    out = engineer_school_features(toy_schools)

    for col in ("z_ela", "z_math", "per_lunch", "lunch_count", "subsidy_tier"):
        assert col in out.columns
    assert "z_ela" not in toy_schools.columns


@pytest.mark.parametrize("missing", ["year", "mean_ela_score", "mean_math_score"])
def test_zscores_require_year_and_score_columns(toy_schools, missing):
    with pytest.raises(DomainError) as excinfo:
        add_score_zscores(toy_schools.drop(columns=missing))

    assert excinfo.value.column == missing


def test_subsidy_tier_per_year():
    schools = pd.DataFrame({
        "year": [2015] * 3 + [2016] * 3,
        "total_enroll": [100.0] * 6,
        "per_free_lunch": [0.1, 0.2, 0.3, 0.7, 0.8, 0.9],
        "per_reduced_lunch": [0.0] * 6,
    })

    pooled = add_subsidy_tier(schools, tier_scope="pooled")["subsidy_tier"].tolist()
    per_year = add_subsidy_tier(schools, tier_scope="per-year")["subsidy_tier"].tolist()

    assert pooled == ["low", "low", "medium", "medium", "high", "high"]
    assert per_year == ["low", "medium", "high"] * 2

"""
Pytest configuration and shared fixtures for the NYS school poverty report tests.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def raw_counties() -> pd.DataFrame:
    """Two counties over two years, as they come out of the CSV."""
    return pd.DataFrame({
        "County_Name ": ["ALBANY", "BRONX", "ALBANY", "BRONX"],
        "year": [2015, 2015, 2016, 2016],
        "median_household_income": [40000, 20000, 42000, -99],
        "county_per_poverty": [0.10, 0.30, 0.11, 0.29],
        "county_per_bach": [0.40, 0.20, "", 0.21],
    })


@pytest.fixture
def raw_schools() -> pd.DataFrame:
    """Four schools over two years with a few sentinel cells."""
    return pd.DataFrame({
        "school_cd": ["A1", "A2", "B1", "B2", "A1", "A2", "B1", "B2"],
        "county_name": ["ALBANY", "ALBANY", "BRONX", "BRONX"] * 2,
        "year": [2015] * 4 + [2016] * 4,
        "total_enroll": [100, 400, 200, 300, 110, 390, 210, 290],
        "mean_ela_score": [650, 640, 600, 610, 655, -99, 605, 615],
        "mean_math_score": [660, 650, 590, 600, 665, 652, 595, 605],
        "per_free_lunch": [0.10, 0.20, 0.60, 0.70, 0.10, 0.20, 0.60, 0.70],
        "per_reduced_lunch": [0.05, 0.05, 0.10, 0.10, 0.05, 0.05, 0.10, 0.10],
    })


@pytest.fixture
def toy_counties() -> pd.DataFrame:
    """Two counties, one year."""
    return pd.DataFrame({
        "county_name": ["A", "B"],
        "year": [2016, 2016],
        "median_household_income": [40000.0, 20000.0],
        "county_per_poverty": [0.10, 0.30],
    })


@pytest.fixture
def toy_schools() -> pd.DataFrame:
    """One school in each toy county."""
    return pd.DataFrame({
        "school_cd": ["s1", "s2"],
        "county_name": ["A", "B"],
        "year": [2016, 2016],
        "total_enroll": [100.0, 300.0],
        "mean_ela_score": [700.0, 600.0],
        "mean_math_score": [680.0, 620.0],
        "per_free_lunch": [0.10, 0.50],
        "per_reduced_lunch": [0.10, 0.10],
    })


@pytest.fixture
def empty_dataframe() -> pd.DataFrame:
    """Return an empty DataFrame for edge case testing."""
    return pd.DataFrame()


@pytest.fixture
def write_csv(tmp_path):
    """Write a DataFrame to a CSV under ``tmp_path`` and return its path."""
    def _write(df: pd.DataFrame, name: str):
        path = tmp_path / name
        df.to_csv(path, index=False)
        return path
    return _write


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(7)

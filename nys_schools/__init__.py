"""
nys-school-poverty · nys_schools
=================================
Public re-exports so notebooks can do:
    from nys_schools import load_schools, clean_schools, engineer_school_features, plots
"""

from .data_cleaning import clean_counties, clean_schools, load_counties, load_schools, sanitize
from .feature_engineering import engineer_county_features, engineer_school_features
from .merging import merge_school_county
from .aggregation import county_summary, extremes_summary, tier_time_series, two_stage_mean
from .exceptions import DataLoadError, DomainError, EmptyGroupError, PipelineError
from .pipeline import run_pipeline
from . import plotting as plots

__all__ = [
    "load_schools",
    "load_counties",
    "sanitize",
    "clean_schools",
    "clean_counties",
    "engineer_school_features",
    "engineer_county_features",
    "merge_school_county",
    "county_summary",
    "extremes_summary",
    "tier_time_series",
    "two_stage_mean",
    "run_pipeline",
    "DataLoadError",
    "DomainError",
    "EmptyGroupError",
    "PipelineError",
    "plots",
]

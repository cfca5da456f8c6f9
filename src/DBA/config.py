"""
Analysis configuration.

A single AnalysisConfig is built at the boundary (CLI or caller) and passed
explicitly to every component; nothing here is module-level mutable state.
"""

import typing
from dataclasses import dataclass

from .record import AGE_BRACKETS

DEFAULT_YEAR_START = 2010
DEFAULT_YEAR_END = 2020
DEFAULT_DISEASES = ("Malaria", "Diabetes", "HIV/AIDS", "Tuberculosis", "COVID-19")
DEFAULT_TOP_N = 20
DEFAULT_COMPARISON_LIMIT = 30
DEFAULT_TREND_DISEASE = "Malaria"
DEFAULT_TREND_BRACKET = "0_18"


class ConfigurationError(ValueError):
    """Invalid analysis configuration; raised before any computation starts."""


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters of one aggregation pass.

    Attributes:
        year_start, year_end: Inclusive year window for profiles and imputation.
        diseases: Disease names to report on, or None for every disease.
        top_n: Length of the child-burden ranking.
        comparison_limit: Maximum rows of the gender comparison table.
        trend_disease: Disease whose year-trend series is produced.
        trend_bracket: Age bracket key used for the year trend.
    """

    year_start: int = DEFAULT_YEAR_START
    year_end: int = DEFAULT_YEAR_END
    diseases: typing.Optional[tuple[str, ...]] = DEFAULT_DISEASES
    top_n: int = DEFAULT_TOP_N
    comparison_limit: int = DEFAULT_COMPARISON_LIMIT
    trend_disease: str = DEFAULT_TREND_DISEASE
    trend_bracket: str = DEFAULT_TREND_BRACKET

    def __post_init__(self):
        if self.year_start > self.year_end:
            raise ConfigurationError(
                f"Invalid year window: start {self.year_start} is after end {self.year_end}"
            )
        if self.diseases is not None:
            if isinstance(self.diseases, str):
                raise ConfigurationError(
                    f"Disease filter must be a collection of names, got the string {self.diseases!r}"
                )
            # accept any iterable of names but store an immutable tuple
            names = tuple(str(name).strip() for name in self.diseases)
            if not names or not all(names):
                raise ConfigurationError("Disease filter list must not be empty")
            object.__setattr__(self, "diseases", names)
        if self.top_n < 1:
            raise ConfigurationError(f"top_n must be at least 1, got {self.top_n}")
        if self.comparison_limit < 1:
            raise ConfigurationError(
                f"comparison_limit must be at least 1, got {self.comparison_limit}"
            )
        if self.trend_bracket not in AGE_BRACKETS:
            raise ConfigurationError(
                f"Unknown age bracket {self.trend_bracket!r}; expected one of {list(AGE_BRACKETS)}"
            )

    def in_window(self, year: int) -> bool:
        return self.year_start <= year <= self.year_end

    def selects(self, disease_name: str) -> bool:
        """True when the disease passes the name filter (no filter selects all)."""
        return self.diseases is None or disease_name in self.diseases

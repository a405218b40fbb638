"""
Launch detection and days-live normalization for a single page's daily traffic.

A raw series is a DataFrame with one row per date on which the page received
traffic (``date`` and ``count`` columns). Normalizing it anchors day 0 at the
first date whose count clears a threshold, fills every missing calendar day
with a zero count, and adds a running total.
"""

from typing import Optional

import numpy as np
import pandas as pd


class NormalizationError(ValueError):
    """Base class for errors raised while normalizing one page's series."""

    def __init__(self, message: str, entity: Optional[str] = None):
        self.entity = entity
        if entity is not None:
            message = f"{entity}: {message}"
        super().__init__(message)


class InvalidInputSeries(NormalizationError):
    """Raw series is not sorted, has duplicate dates, or has bad counts."""


class NoQualifyingLaunchDay(NormalizationError):
    """No day in the raw series exceeds the first-day count threshold."""


def validate_series(series: pd.DataFrame, date_col: str = 'date', count_col: str = 'count',
                    entity: Optional[str] = None) -> pd.DataFrame:
    """
    Check a raw series and return a cleaned copy.

    Parameters
    ----------
    series : pd.DataFrame
        Raw observations with a date column and a count column.
    date_col, count_col : str, optional
        Column names to read.
    entity : str, optional
        Page identifier, only used in error messages.

    Returns
    -------
    pd.DataFrame
        Copy with columns ``date`` (day-resolution datetime64) and ``count``
        (int64), index reset.

    Raises
    ------
    InvalidInputSeries
        If a column is missing, a date cannot be parsed, dates are not strictly
        ascending, or a count is non-numeric, missing, fractional or negative.
    """
    missing = [c for c in (date_col, count_col) if c not in series.columns]
    if missing:
        raise InvalidInputSeries(f"missing column(s) {missing}", entity=entity)

    try:
        dates = pd.to_datetime(series[date_col]).dt.normalize()
    except (ValueError, TypeError) as e:
        raise InvalidInputSeries(f"could not parse dates: {e}", entity=entity) from e

    if dates.isna().any():
        raise InvalidInputSeries("series contains missing dates", entity=entity)
    if not dates.is_unique:
        dupes = dates[dates.duplicated()].dt.strftime('%Y-%m-%d').tolist()
        raise InvalidInputSeries(f"duplicate dates {dupes}", entity=entity)
    if not dates.is_monotonic_increasing:
        raise InvalidInputSeries("dates are not in ascending order", entity=entity)

    raw_counts = series[count_col]
    if len(raw_counts) and (not pd.api.types.is_numeric_dtype(raw_counts)
                            or pd.api.types.is_bool_dtype(raw_counts)):
        raise InvalidInputSeries(f"counts must be numeric, got dtype {raw_counts.dtype}", entity=entity)

    counts = pd.to_numeric(raw_counts)
    if counts.isna().any():
        raise InvalidInputSeries("series contains missing counts", entity=entity)
    if (counts < 0).any():
        raise InvalidInputSeries("series contains negative counts", entity=entity)
    if (counts % 1 != 0).any():
        raise InvalidInputSeries("series contains non-integer counts", entity=entity)

    return pd.DataFrame({
        'date': dates.to_numpy(),
        'count': counts.astype('int64').to_numpy(),
    })


def detect_launch_date(series: pd.DataFrame, min_first_day_count: int,
                       entity: Optional[str] = None) -> pd.Timestamp:
    """
    Return the first date whose count strictly exceeds ``min_first_day_count``.

    Raises ``NoQualifyingLaunchDay`` if there is no such date (including for an
    empty series).
    """
    series = validate_series(series, entity=entity)
    return _launch_date(series, min_first_day_count, entity)


def _launch_date(series, min_first_day_count, entity):
    qualifying = series.loc[series['count'] > min_first_day_count, 'date']
    if qualifying.empty:
        raise NoQualifyingLaunchDay(
            f"no day has more than {min_first_day_count} visits "
            f"({len(series)} days observed)",
            entity=entity
        )
    return pd.Timestamp(qualifying.iloc[0])


def normalize_launch(series: pd.DataFrame, min_first_day_count: int, max_days_live: int,
                     entity: Optional[str] = None) -> pd.DataFrame:
    """
    Re-index a page's daily traffic to days since launch.

    Parameters
    ----------
    series : pd.DataFrame
        Raw observations for one page: ``date`` and ``count`` columns, one row
        per date with traffic, ascending by date. Days without traffic are
        absent.
    min_first_day_count : int
        Launch day is the first date whose count is strictly greater than this.
    max_days_live : int
        Rows with ``days_live`` greater than this are dropped.
    entity : str, optional
        Page identifier attached to any raised error.

    Returns
    -------
    pd.DataFrame
        Columns ``date``, ``days_live``, ``count`` and ``cumulative_count``; one
        row per calendar day from launch through the last observed date (capped
        at ``max_days_live``), ascending by ``days_live``.

    Raises
    ------
    InvalidInputSeries
        If the raw series fails validation.
    NoQualifyingLaunchDay
        If no day clears ``min_first_day_count``.
    ValueError
        If ``max_days_live`` is negative.

    Examples
    --------
    >>> raw = pd.DataFrame({
    ...     'date': pd.to_datetime(['2024-01-01', '2024-01-02', '2024-01-04']),
    ...     'count': [1, 3, 5],
    ... })
    >>> normalize_launch(raw, min_first_day_count=2, max_days_live=10)[['days_live', 'count', 'cumulative_count']]
       days_live  count  cumulative_count
    0          0      3                 3
    1          1      0                 3
    2          2      5                 8
    """
    if max_days_live < 0:
        raise ValueError(f"max_days_live must be non-negative, got {max_days_live}")

    series = validate_series(series, entity=entity)
    launch_date = _launch_date(series, min_first_day_count, entity)

    live = series[series['date'] >= launch_date]
    calendar = pd.date_range(start=launch_date, end=live['date'].iloc[-1], freq='D')

    # Missing calendar days had no traffic
    counts_by_date = live.set_index('date')['count']
    counts = counts_by_date.reindex(calendar, fill_value=0).to_numpy(dtype='int64')

    normalized = pd.DataFrame({
        'date': calendar,
        'days_live': np.arange(len(calendar), dtype='int64'),
        'count': counts,
    })
    normalized['cumulative_count'] = normalized['count'].cumsum()

    normalized = normalized[normalized['days_live'] <= max_days_live]
    return normalized.reset_index(drop=True)

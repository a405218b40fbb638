"""
Apply launch normalization across many pages.

Each page is normalized independently, either in a plain loop or fanned out to a
Dask distributed client. Failures are scoped to the page that raised them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Iterable

import numpy as np
import pandas as pd
from omegaconf import DictConfig

from .normalize import normalize_launch, NormalizationError


@dataclass
class NormalizationResult:
    """Normalized frames, launch dates and skip reasons keyed by page."""
    frames: Dict[str, pd.DataFrame] = field(default_factory=dict)
    skipped: Dict[str, str] = field(default_factory=dict)
    launch_dates: Dict[str, pd.Timestamp] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def pages(self) -> List[str]:
        """Normalized pages in selection order."""
        return [p for p in self.order if p in self.frames]


def select_entities(raw: pd.DataFrame, min_total_count: int, entity_col: str = 'page') -> List[str]:
    """
    Return pages whose total count over the whole range is at least ``min_total_count``.

    Pages are ordered by descending total, ties broken by name.
    """
    if raw.empty:
        return []
    totals = raw.groupby(entity_col)['count'].sum()
    totals = totals[totals >= min_total_count]
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return [page for page, _ in ranked]


def split_by_entity(raw: pd.DataFrame, entities: Optional[Iterable[str]] = None,
                    entity_col: str = 'page') -> Dict[str, pd.DataFrame]:
    """
    Split a multi-page frame into per-page ``date``/``count`` frames sorted by date.

    Duplicate dates within a page are kept so the normalizer can reject them.
    """
    grouped = {page: group for page, group in raw.groupby(entity_col, sort=False)}
    if entities is None:
        entities = sorted(grouped)

    series = {}
    for page in entities:
        group = grouped.get(page)
        if group is None:
            group = raw.iloc[0:0]
        series[page] = (group[['date', 'count']]
                        .sort_values('date', kind='stable')
                        .reset_index(drop=True))
    return series


def normalize_entities(series_by_entity: Dict[str, pd.DataFrame], min_first_day_count: int,
                       max_days_live: int, client=None, strict: bool = False,
                       verbose: bool = False) -> NormalizationResult:
    """
    Normalize every page's series independently.

    Parameters
    ----------
    series_by_entity : dict
        Page identifier to raw ``date``/``count`` frame.
    min_first_day_count : int
        Launch threshold passed to :func:`~pagelife.normalize.normalize_launch`.
    max_days_live : int
        Output horizon passed to :func:`~pagelife.normalize.normalize_launch`.
    client : dask.distributed.Client, optional
        If given, one task is submitted per page and results are gathered as they
        complete. Otherwise pages are processed sequentially.
    strict : bool, optional
        Re-raise the first normalization error instead of skipping the page.
    verbose : bool, optional
        Print a line per page processed.

    Returns
    -------
    NormalizationResult
    """
    result = NormalizationResult(order=list(series_by_entity))

    if client is None:
        for page, series in series_by_entity.items():
            try:
                normalized = normalize_launch(series, min_first_day_count, max_days_live, entity=page)
            except NormalizationError as e:
                _record_failure(result, page, e, strict)
                continue
            _record_success(result, page, normalized, verbose)
        return result

    from dask.distributed import as_completed

    futures = {}
    for page, series in series_by_entity.items():
        future = client.submit(normalize_launch, series, min_first_day_count, max_days_live,
                               entity=page, pure=False)
        futures[future] = page

    for future in as_completed(list(futures)):
        page = futures[future]
        try:
            normalized = future.result()
        except NormalizationError as e:
            _record_failure(result, page, e, strict)
            continue
        _record_success(result, page, normalized, verbose)

    return result


def _record_success(result, page, normalized, verbose):
    result.frames[page] = normalized
    result.launch_dates[page] = pd.Timestamp(normalized['date'].iloc[0])
    if verbose:
        print(f"  Normalized {page}: launched {result.launch_dates[page].date()}, "
              f"{len(normalized)} days live")


def _record_failure(result, page, error, strict):
    if strict:
        raise error
    logging.warning(f"Skipping {page}: {error}")
    result.skipped[page] = f"{type(error).__name__}: {error}"


def combine_lifecycles(result: NormalizationResult) -> pd.DataFrame:
    """Stack normalized frames into one long frame with a leading ``page`` column."""
    pages = result.pages()
    if not pages:
        return pd.DataFrame({
            'page': pd.Series(dtype='object'),
            'date': pd.Series(dtype='datetime64[ns]'),
            'days_live': pd.Series(dtype='int64'),
            'count': pd.Series(dtype='int64'),
            'cumulative_count': pd.Series(dtype='int64'),
        })

    frames = []
    for page in pages:
        frame = result.frames[page].copy()
        frame.insert(0, 'page', page)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


def build_lifecycle(raw: pd.DataFrame, conf: DictConfig, client=None) -> NormalizationResult:
    """
    Select pages from a raw multi-page frame and normalize each of them.

    Parameters
    ----------
    raw : pd.DataFrame
        Columns ``date``, ``page`` and ``count``.
    conf : DictConfig
        Configuration with ``normalization`` and ``logging`` sections.
    client : dask.distributed.Client, optional
        Parallel executor; see :func:`normalize_entities`.

    Returns
    -------
    NormalizationResult
    """
    norm = conf.normalization
    verbose = conf.logging.get('verbose', False)

    entities = select_entities(raw, norm.min_total_count)
    if verbose:
        n_pages = raw['page'].nunique() if not raw.empty else 0
        print(f"Selected {len(entities)} of {n_pages} pages with at least "
              f"{norm.min_total_count} total visits")

    series = split_by_entity(raw, entities)
    return normalize_entities(
        series,
        norm.min_first_day_count,
        norm.max_days_live,
        client=client,
        strict=norm.get('strict', False),
        verbose=verbose,
    )


def summarize_lifecycles(lifecycles, milestones: Iterable[int] = (7, 30, 90)) -> pd.DataFrame:
    """
    One row per normalized page: launch date, days observed, total visits, and the
    cumulative count reached at each milestone day (NaN if the page has not been
    live that long).

    ``lifecycles`` is a NormalizationResult or a combined lifecycle frame as
    returned by :func:`combine_lifecycles`.
    """
    if isinstance(lifecycles, NormalizationResult):
        lifecycles = combine_lifecycles(lifecycles)

    milestones = list(milestones)
    rows = []
    for page, frame in lifecycles.groupby('page', sort=False):
        row = {
            'page': page,
            'launch_date': frame.loc[frame['days_live'] == 0, 'date'].iloc[0],
            'days_observed': len(frame),
            'total_count': int(frame['count'].sum()),
        }
        cumulative = frame.set_index('days_live')['cumulative_count']
        for day in milestones:
            row[f'cumulative_day_{day}'] = cumulative.get(day, np.nan)
        rows.append(row)

    columns = ['page', 'launch_date', 'days_observed', 'total_count'] + [f'cumulative_day_{d}' for d in milestones]
    return pd.DataFrame(rows, columns=columns)


def build_lifecycle_by_category(raw: pd.DataFrame, conf: DictConfig, client=None,
                                category_col: str = 'category') -> Dict[str, NormalizationResult]:
    """
    Run :func:`build_lifecycle` separately for each value of ``category_col``.

    Page selection and launch detection are done per category, so the same page can
    have different launch dates in different categories.
    """
    results = {}
    for category, group in raw.groupby(category_col, sort=False):
        if conf.logging.get('verbose', False):
            print(f"Category {category}:")
        results[category] = build_lifecycle(group.drop(columns=[category_col]), conf, client=client)
    return results


def combine_category_lifecycles(results: Dict[str, NormalizationResult],
                                category_col: str = 'category') -> pd.DataFrame:
    """Stack per-category lifecycle frames with a leading category column."""
    frames = []
    for category, result in results.items():
        frame = combine_lifecycles(result)
        frame.insert(0, category_col, category)
        frames.append(frame)
    if not frames:
        frame = combine_lifecycles(NormalizationResult())
        frame.insert(0, category_col, pd.Series(dtype='object'))
        return frame
    return pd.concat(frames, ignore_index=True)


def label_by_category(lifecycles: pd.DataFrame, category_col: str = 'category') -> pd.DataFrame:
    """
    Prefix each page with its category so the same page in two categories
    stays two separate lifecycles when grouped by ``page``.

    Frames without ``category_col`` are returned unchanged.
    """
    if category_col not in lifecycles.columns:
        return lifecycles
    return lifecycles.assign(page=lifecycles[category_col].astype(str) + ' ' + lifecycles['page'].astype(str))

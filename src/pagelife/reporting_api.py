"""
This module provides functions to query a web analytics reporting API
(Google Analytics Reporting API v4 ``reports:batchGet``) for daily per-page traffic.
It includes helpers to build nested filter and segment objects, to repeat a query once
per category value, and to flatten report responses into DataFrames.

Authentication is not handled here: callers pass an already-issued bearer token.
"""

import logging
import time
from typing import Dict, Any, List, Optional, Sequence

import pandas as pd
import requests

reporting_base_url = "https://analyticsreporting.googleapis.com/v4"

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class ReportingAPIError(RuntimeError):
    """The reporting API returned an error body or an unexpected payload."""


def dimension_filter(dimension: str, expressions, operator: str = 'EXACT', not_: bool = False) -> Dict[str, Any]:
    """
    Build a single dimension filter entry.

    Parameters
    ----------
    dimension : str
        Dimension name, e.g. ``'ga:pagePath'``.
    expressions : str or list of str
        Value(s) to match.
    operator : str, optional
        Match operator (``'EXACT'``, ``'BEGINS_WITH'``, ``'REGEXP'``, ...).
    not_ : bool, optional
        Negate the filter.

    Returns
    -------
    dict
    """
    if isinstance(expressions, str):
        expressions = [expressions]
    return {
        "dimensionName": dimension,
        "not": not_,
        "operator": operator,
        "expressions": list(expressions),
    }


def dynamic_segment(name: str, dimension: str, expressions, operator: str = 'EXACT') -> Dict[str, Any]:
    """
    Build a session-level dynamic segment that keeps sessions matching one dimension filter.
    """
    return {
        "dynamicSegment": {
            "name": name,
            "sessionSegment": {
                "segmentFilters": [{
                    "simpleSegment": {
                        "orFiltersForSegment": [{
                            "segmentFilterClauses": [{
                                "dimensionFilter": {
                                    "dimensionName": dimension,
                                    "operator": operator,
                                    "expressions": [expressions] if isinstance(expressions, str) else list(expressions),
                                }
                            }]
                        }]
                    }
                }]
            }
        }
    }


def build_report_request(view_id, start_date: str, end_date: str, metrics: Sequence[str],
                         dimensions: Sequence[str], dimension_filters: Optional[List[Dict[str, Any]]] = None,
                         segment=None, page_size: int = 10000, page_token: Optional[str] = None) -> Dict[str, Any]:
    """
    Build one report request object.

    Parameters
    ----------
    view_id : str or int
        Reporting view identifier.
    start_date, end_date : str
        Inclusive date range, ``YYYY-MM-DD``.
    metrics : sequence of str
        Metric expressions, e.g. ``['ga:uniquePageviews']``.
    dimensions : sequence of str
        Dimension names, e.g. ``['ga:date', 'ga:pagePath']``.
    dimension_filters : list of dict, optional
        Filters from :func:`dimension_filter`, combined with AND.
    segment : str or dict, optional
        A segment id (``'gaid::-5'``) or a segment object such as the output of
        :func:`dynamic_segment`. The ``ga:segment`` dimension is added when set.
    page_size : int, optional
        Rows per response page.
    page_token : str, optional
        Continuation token from a previous response.

    Returns
    -------
    dict
        Request object suitable for ``{"reportRequests": [request]}``.
    """
    dimensions = list(dimensions)

    request = {
        "viewId": str(view_id),
        "dateRanges": [{"startDate": str(start_date), "endDate": str(end_date)}],
        "metrics": [{"expression": m} for m in metrics],
        "dimensions": [{"name": d} for d in dimensions],
        "pageSize": page_size,
    }

    if dimension_filters:
        request["dimensionFilterClauses"] = [{
            "operator": "AND",
            "filters": list(dimension_filters),
        }]

    if segment is not None:
        if isinstance(segment, str):
            segment = {"segmentId": segment}
        request["segments"] = [segment]
        if "ga:segment" not in dimensions:
            request["dimensions"].append({"name": "ga:segment"})

    if page_token:
        request["pageToken"] = page_token

    return request


def get_report(request: Dict[str, Any], token: Optional[str] = None, base_url: str = reporting_base_url,
               retries: int = 3, initial_retry_time: float = 1, debug: bool = False) -> List[Dict[str, Any]]:
    """
    Run a report request and follow ``nextPageToken`` until all rows are fetched.

    Parameters
    ----------
    request : dict
        Request object from :func:`build_report_request`.
    token : str, optional
        Bearer token sent in the Authorization header.
    base_url : str, optional
        API root. Default is reporting_base_url.
    retries : int, optional
        Retry budget for throttled or failed requests.

    Returns
    -------
    list of dict
        One report object per response page.
    """
    reports = []
    request = dict(request)

    while True:
        response_json = _reporting_api_request(
            "/reports:batchGet", {"reportRequests": [dict(request)]}, token=token, base_url=base_url,
            retries=retries, initial_retry_time=initial_retry_time, debug=debug
        )

        if 'error' in response_json:
            error = response_json['error']
            raise ReportingAPIError(f"Reporting API error {error.get('code')}: {error.get('message')}")
        if not response_json.get('reports'):
            raise ReportingAPIError("Reporting API response contains no reports")

        report = response_json['reports'][0]
        reports.append(report)

        next_token = report.get('nextPageToken')
        if not next_token:
            return reports
        if debug:
            print(f"Fetching next page starting at {next_token}")
        request["pageToken"] = next_token


def _reporting_api_request(path, data, token=None, base_url=reporting_base_url, retries=3,
                           initial_retry_time=1, debug=False, timeout=60):
    """
    Helper function to make a POST request to the reporting API.

    Throttling and transient server errors are retried with exponential backoff
    until ``retries`` is exhausted, after which the HTTP error is raised.

    Parameters
    ----------
    path : str
        The API endpoint path.
    data : dict
        The JSON body to send.
    token : str, optional
        Bearer token.
    base_url : str, optional
        The API root. Default is reporting_base_url.
    retries : int, optional
        Number of retry attempts for failed requests. Default is 3.

    Returns
    -------
    dict
        API response as JSON.
    """
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"

    headers = {'Content-Type': 'application/json'}
    if token:
        headers['Authorization'] = f'Bearer {token}'

    if debug:
        print(f"Making POST request to {url} with data: {data}")
    response = requests.post(url, json=data, headers=headers, timeout=timeout)

    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError:
        if response.status_code in RETRYABLE_STATUS_CODES and retries > 0:
            logging.warning(f"Reporting API returned {response.status_code}. Retrying in {initial_retry_time} seconds...")
            time.sleep(initial_retry_time)
            return _reporting_api_request(path, data, token=token, base_url=base_url, retries=retries-1,
                                          initial_retry_time=initial_retry_time*2, debug=debug, timeout=timeout)
        raise

    return response.json()


def report_to_dataframe(reports: List[Dict[str, Any]]) -> pd.DataFrame:
    """
    Flatten report pages into a DataFrame.

    Dimension and metric names lose their ``ga:`` prefix. A ``date`` dimension in
    ``YYYYMMDD`` form is parsed to datetime and integer metrics are cast to int.

    Parameters
    ----------
    reports : list of dict
        Report objects as returned by :func:`get_report`.

    Returns
    -------
    pd.DataFrame
    """
    if not reports:
        return pd.DataFrame()

    header = reports[0].get('columnHeader', {})
    dimension_names = [_strip_prefix(d) for d in header.get('dimensions', [])]
    metric_headers = header.get('metricHeader', {}).get('metricHeaderEntries', [])
    metric_names = [_strip_prefix(m['name']) for m in metric_headers]
    metric_types = [m.get('type', 'INTEGER') for m in metric_headers]

    records = []
    for report in reports:
        for row in report.get('data', {}).get('rows', []) or []:
            record = dict(zip(dimension_names, row.get('dimensions', [])))
            # Only the first date range is requested
            values = row['metrics'][0]['values']
            record.update(zip(metric_names, values))
            records.append(record)

    df = pd.DataFrame(records, columns=dimension_names + metric_names)

    for name, metric_type in zip(metric_names, metric_types):
        if metric_type == 'INTEGER':
            df[name] = pd.to_numeric(df[name]).astype('int64')
        else:
            df[name] = pd.to_numeric(df[name])

    if 'date' in df.columns:
        df['date'] = pd.to_datetime(df['date'], format='%Y%m%d')

    return df


def _strip_prefix(name):
    return name.split(':', 1)[1] if ':' in name else name


def get_daily_page_counts(view_id, start_date: str, end_date: str, metric: str = 'ga:uniquePageviews',
                          page_dimension: str = 'ga:pagePath', page_filters: Optional[List[Dict[str, Any]]] = None,
                          segment=None, page_size: int = 10000, **request_kwargs) -> pd.DataFrame:
    """
    Fetch one row per (date, page) with traffic over a date range.

    Parameters
    ----------
    view_id : str or int
        Reporting view identifier.
    start_date, end_date : str
        Inclusive date range, ``YYYY-MM-DD``.
    metric : str, optional
        Metric to count. Default is unique pageviews.
    page_dimension : str, optional
        Dimension identifying a page.
    page_filters : list of dict, optional
        Extra dimension filters.
    segment : str or dict, optional
        Segment to restrict sessions to.
    **request_kwargs
        Passed through to :func:`get_report` (``token``, ``base_url``, ``retries``, ...).

    Returns
    -------
    pd.DataFrame
        Columns ``date``, ``page`` and ``count``, sorted by page then date. Days with
        no traffic for a page are absent.
    """
    request = build_report_request(
        view_id, start_date, end_date,
        metrics=[metric],
        dimensions=['ga:date', page_dimension],
        dimension_filters=page_filters,
        segment=segment,
        page_size=page_size,
    )
    df = report_to_dataframe(get_report(request, **request_kwargs))

    if df.empty:
        return pd.DataFrame({
            'date': pd.Series(dtype='datetime64[ns]'),
            'page': pd.Series(dtype='object'),
            'count': pd.Series(dtype='int64'),
        })

    df = df.rename(columns={_strip_prefix(page_dimension): 'page', _strip_prefix(metric): 'count'})
    df = df[['date', 'page', 'count']]
    return df.sort_values(['page', 'date']).reset_index(drop=True)


def get_report_by_category(category_dimension: str, values: Sequence[str], view_id, start_date: str,
                           end_date: str, page_filters: Optional[List[Dict[str, Any]]] = None,
                           **kwargs) -> pd.DataFrame:
    """
    Repeat the daily page query once per category value and stack the results.

    Each query adds an exact-match filter on ``category_dimension`` to ``page_filters``.

    Parameters
    ----------
    category_dimension : str
        Dimension to split on, e.g. ``'ga:deviceCategory'``.
    values : sequence of str
        Category values, one query each.
    view_id, start_date, end_date, page_filters
        As for :func:`get_daily_page_counts`.
    **kwargs
        Passed through to :func:`get_daily_page_counts`.

    Returns
    -------
    pd.DataFrame
        Columns ``category``, ``date``, ``page`` and ``count``.
    """
    frames = []
    for value in values:
        filters = list(page_filters or []) + [dimension_filter(category_dimension, value)]
        df = get_daily_page_counts(view_id, start_date, end_date, page_filters=filters, **kwargs)
        df.insert(0, 'category', value)
        frames.append(df)

    if not frames:
        return pd.DataFrame(columns=['category', 'date', 'page', 'count'])
    return pd.concat(frames, ignore_index=True)

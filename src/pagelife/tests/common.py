"""Common builders for raw traffic frames and mock API responses used in tests."""

import pandas as pd
from omegaconf import OmegaConf


def make_series(rows, start='2024-03-01'):
    """Build a raw single-page series.

    Parameters
    ----------
    rows : list of tuple
        ``(day_offset, count)`` pairs; offsets are days after ``start``.
    start : str, optional
        Date of offset 0, by default '2024-03-01'

    Returns
    -------
    pd.DataFrame
        Columns ``date`` and ``count``
    """
    base = pd.Timestamp(start)
    return pd.DataFrame({
        'date': [base + pd.Timedelta(days=offset) for offset, _ in rows],
        'count': [count for _, count in rows],
    })


def make_raw_traffic(pages, start='2024-03-01'):
    """Build a raw multi-page frame from ``{page: [(day_offset, count), ...]}``."""
    frames = []
    for page, rows in pages.items():
        frame = make_series(rows, start=start)
        frame.insert(1, 'page', page)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


def get_test_config(**normalization):
    """Configuration with the sections the lifecycle functions read."""
    conf = OmegaConf.create({
        'analytics': {
            'base_url': 'https://reporting.example.com/v4',
            'view_id': '1234',
            'token': 'test-token',
            'metric': 'ga:uniquePageviews',
            'page_dimension': 'ga:pagePath',
            'page_size': 1000,
            'retries': 2,
        },
        'query': {
            'start_date': '2024-03-01',
            'end_date': '2024-03-31',
            'page_filters': None,
            'segment': None,
            'category_dimension': None,
            'categories': None,
        },
        'normalization': {
            'min_first_day_count': 2,
            'max_days_live': 10,
            'min_total_count': 0,
            'strict': False,
        },
        'processing': {'parallel': False, 'n_workers': 1, 'threads_per_worker': 1},
        'output': {'path': './out', 'charts': False, 'top_n': 5},
        'logging': {'verbose': False, 'level': 'INFO'},
    })
    for key, value in normalization.items():
        conf.normalization[key] = value
    return conf


def create_mock_report(rows, dimensions=('ga:date', 'ga:pagePath'), metric='ga:uniquePageviews',
                       next_page_token=None):
    """Create a report object as returned inside a batchGet response.

    Parameters
    ----------
    rows : list of tuple
        ``(dimension_values, metric_value)`` pairs, e.g. ``(('20240301', '/a'), 5)``
    dimensions : tuple of str, optional
        Dimension header names
    metric : str, optional
        Metric header name
    next_page_token : str, optional
        Continuation token to include

    Returns
    -------
    dict
    """
    report = {
        'columnHeader': {
            'dimensions': list(dimensions),
            'metricHeader': {
                'metricHeaderEntries': [{'name': metric, 'type': 'INTEGER'}]
            }
        },
        'data': {
            'rows': [
                {'dimensions': list(dims), 'metrics': [{'values': [str(value)]}]}
                for dims, value in rows
            ],
            'rowCount': len(rows),
        }
    }
    if next_page_token:
        report['nextPageToken'] = next_page_token
    return report


def create_mock_response(json_body, status_code=200):
    """Mock ``requests.Response`` with a JSON body and a status code."""
    from unittest.mock import Mock
    import requests

    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response

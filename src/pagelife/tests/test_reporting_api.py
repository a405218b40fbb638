"""
Test reporting API helpers. HTTP calls are mocked; these tests check request
construction, paging, retries and response flattening.
"""

import pandas as pd
import pytest
import requests
from unittest.mock import patch

import pagelife.reporting_api as reporting_api
from pagelife.reporting_api import (
    build_report_request, dimension_filter, dynamic_segment, get_report,
    report_to_dataframe, get_daily_page_counts, get_report_by_category, ReportingAPIError
)
from .common import create_mock_report, create_mock_response


class TestBuildReportRequest:

    def test_basic_request(self):
        request = build_report_request('1234', '2024-03-01', '2024-03-31',
                                       metrics=['ga:uniquePageviews'],
                                       dimensions=['ga:date', 'ga:pagePath'])

        assert request['viewId'] == '1234'
        assert request['dateRanges'] == [{'startDate': '2024-03-01', 'endDate': '2024-03-31'}]
        assert request['metrics'] == [{'expression': 'ga:uniquePageviews'}]
        assert request['dimensions'] == [{'name': 'ga:date'}, {'name': 'ga:pagePath'}]
        assert 'dimensionFilterClauses' not in request
        assert 'segments' not in request
        assert 'pageToken' not in request

    def test_filters_are_nested_under_and_clause(self):
        filters = [
            dimension_filter('ga:pagePath', '/blog/', operator='BEGINS_WITH'),
            dimension_filter('ga:country', ['Canada', 'Mexico'], not_=True),
        ]
        request = build_report_request(1234, '2024-03-01', '2024-03-31', ['ga:sessions'],
                                       ['ga:date'], dimension_filters=filters)

        clauses = request['dimensionFilterClauses']
        assert len(clauses) == 1
        assert clauses[0]['operator'] == 'AND'
        assert clauses[0]['filters'][0] == {
            'dimensionName': 'ga:pagePath', 'not': False,
            'operator': 'BEGINS_WITH', 'expressions': ['/blog/'],
        }
        assert clauses[0]['filters'][1]['not'] is True
        assert clauses[0]['filters'][1]['expressions'] == ['Canada', 'Mexico']

    def test_segment_id_adds_segment_dimension(self):
        request = build_report_request('1', '2024-03-01', '2024-03-31', ['ga:sessions'],
                                       ['ga:date'], segment='gaid::-5')
        assert request['segments'] == [{'segmentId': 'gaid::-5'}]
        assert {'name': 'ga:segment'} in request['dimensions']

    def test_dynamic_segment(self):
        segment = dynamic_segment('Organic', 'ga:medium', 'organic')
        request = build_report_request('1', '2024-03-01', '2024-03-31', ['ga:sessions'],
                                       ['ga:date', 'ga:segment'], segment=segment)

        assert request['dimensions'].count({'name': 'ga:segment'}) == 1
        clause = (request['segments'][0]['dynamicSegment']['sessionSegment']['segmentFilters'][0]
                  ['simpleSegment']['orFiltersForSegment'][0]['segmentFilterClauses'][0])
        assert clause['dimensionFilter'] == {
            'dimensionName': 'ga:medium', 'operator': 'EXACT', 'expressions': ['organic']
        }

    def test_page_token(self):
        request = build_report_request('1', '2024-03-01', '2024-03-31', ['ga:sessions'],
                                       ['ga:date'], page_token='1000')
        assert request['pageToken'] == '1000'


class TestGetReport:

    @patch('pagelife.reporting_api.requests.post')
    def test_follows_page_tokens(self, mock_post):
        mock_post.side_effect = [
            create_mock_response({'reports': [create_mock_report([(('20240301', '/a'), 1)], next_page_token='1')]}),
            create_mock_response({'reports': [create_mock_report([(('20240302', '/a'), 2)])]}),
        ]
        request = build_report_request('1', '2024-03-01', '2024-03-31', ['ga:uniquePageviews'],
                                       ['ga:date', 'ga:pagePath'])

        reports = get_report(request, token='abc', base_url='https://reporting.example.com/v4')

        assert len(reports) == 2
        assert mock_post.call_count == 2
        first_url = mock_post.call_args_list[0].args[0]
        assert first_url == 'https://reporting.example.com/v4/reports:batchGet'
        assert mock_post.call_args_list[0].kwargs['headers']['Authorization'] == 'Bearer abc'
        assert 'pageToken' not in mock_post.call_args_list[0].kwargs['json']['reportRequests'][0]
        assert mock_post.call_args_list[1].kwargs['json']['reportRequests'][0]['pageToken'] == '1'
        # Caller's request is not mutated
        assert 'pageToken' not in request

    @patch('pagelife.reporting_api.time.sleep')
    @patch('pagelife.reporting_api.requests.post')
    def test_retries_throttled_requests(self, mock_post, mock_sleep):
        mock_post.side_effect = [
            create_mock_response({}, status_code=429),
            create_mock_response({}, status_code=503),
            create_mock_response({'reports': [create_mock_report([])]}),
        ]
        reports = get_report({'viewId': '1'}, retries=3, initial_retry_time=1)

        assert len(reports) == 1
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch('pagelife.reporting_api.time.sleep')
    @patch('pagelife.reporting_api.requests.post')
    def test_retries_exhausted(self, mock_post, mock_sleep):
        mock_post.return_value = create_mock_response({}, status_code=500)
        with pytest.raises(requests.exceptions.HTTPError):
            get_report({'viewId': '1'}, retries=2)
        assert mock_post.call_count == 3

    @patch('pagelife.reporting_api.time.sleep')
    @patch('pagelife.reporting_api.requests.post')
    def test_client_errors_not_retried(self, mock_post, mock_sleep):
        mock_post.return_value = create_mock_response({}, status_code=403)
        with pytest.raises(requests.exceptions.HTTPError):
            get_report({'viewId': '1'})
        assert mock_post.call_count == 1
        mock_sleep.assert_not_called()

    @pytest.mark.parametrize("body", [
        pytest.param({'error': {'code': 400, 'message': 'Invalid dimension'}}, id='error_body'),
        pytest.param({'reports': []}, id='no_reports'),
        pytest.param({}, id='empty_body'),
    ])
    @patch('pagelife.reporting_api.requests.post')
    def test_bad_payloads(self, mock_post, body):
        mock_post.return_value = create_mock_response(body)
        with pytest.raises(ReportingAPIError):
            get_report({'viewId': '1'})


class TestReportToDataframe:

    def test_flattens_pages(self):
        reports = [
            create_mock_report([(('20240301', '/a'), 3), (('20240301', '/b'), 7)]),
            create_mock_report([(('20240302', '/a'), 4)]),
        ]
        df = report_to_dataframe(reports)

        assert list(df.columns) == ['date', 'pagePath', 'uniquePageviews']
        assert df['date'].tolist() == [pd.Timestamp('2024-03-01')] * 2 + [pd.Timestamp('2024-03-02')]
        assert df['uniquePageviews'].tolist() == [3, 7, 4]
        assert df['uniquePageviews'].dtype == 'int64'

    def test_no_rows(self):
        report = create_mock_report([])
        del report['data']['rows']
        df = report_to_dataframe([report])
        assert df.empty
        assert list(df.columns) == ['date', 'pagePath', 'uniquePageviews']

    def test_no_reports(self):
        assert report_to_dataframe([]).empty


class TestDailyPageCounts:

    @patch('pagelife.reporting_api.get_report')
    def test_columns_and_order(self, mock_get_report):
        mock_get_report.return_value = [create_mock_report([
            (('20240302', '/b'), 1), (('20240301', '/b'), 2), (('20240301', '/a'), 3)
        ])]
        df = get_daily_page_counts('1', '2024-03-01', '2024-03-31', token='abc')

        assert list(df.columns) == ['date', 'page', 'count']
        assert df['page'].tolist() == ['/a', '/b', '/b']
        assert df['count'].tolist() == [3, 2, 1]
        assert mock_get_report.call_args.kwargs == {'token': 'abc'}

    @patch('pagelife.reporting_api.get_report')
    def test_empty(self, mock_get_report):
        mock_get_report.return_value = [create_mock_report([])]
        df = get_daily_page_counts('1', '2024-03-01', '2024-03-31')
        assert df.empty
        assert list(df.columns) == ['date', 'page', 'count']

    @patch('pagelife.reporting_api.get_report')
    def test_report_by_category_repeats_query(self, mock_get_report):
        mock_get_report.side_effect = [
            [create_mock_report([(('20240301', '/a'), 5)])],
            [create_mock_report([(('20240301', '/a'), 2)])],
        ]
        base_filter = dimension_filter('ga:pagePath', '/blog/', operator='BEGINS_WITH')
        df = get_report_by_category('ga:deviceCategory', ['desktop', 'mobile'], '1',
                                    '2024-03-01', '2024-03-31', page_filters=[base_filter])

        assert mock_get_report.call_count == 2
        assert df['category'].tolist() == ['desktop', 'mobile']
        assert df['count'].tolist() == [5, 2]

        for call, value in zip(mock_get_report.call_args_list, ['desktop', 'mobile']):
            filters = call.args[0]['dimensionFilterClauses'][0]['filters']
            assert filters[0] == base_filter
            assert filters[1] == dimension_filter('ga:deviceCategory', value)

    def test_report_by_category_no_values(self):
        df = get_report_by_category('ga:deviceCategory', [], '1', '2024-03-01', '2024-03-31')
        assert df.empty
        assert 'category' in df.columns


def test_module_base_url():
    assert reporting_api.reporting_base_url.startswith('https://')

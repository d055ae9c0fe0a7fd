"""
Bedrock vision analysis with a fake client
"""
import asyncio
import json

from botocore.exceptions import ClientError

from fakes import FakeBedrockClient, SleepRecorder
from validator import prompt_builder
from validator.resilience import RATE_LIMIT_RETRY
from validator.vision import BedrockVisionAnalyzer

SUCCESS = json.dumps({
    'feature_results': [
        {'feature': 'Show Review Date', 'ui_status': 'Visible', 'config_status': 'Visible',
         'scenario': 'Normal', 'status': 'PASS'},
        {'feature': 'Show Review Ratings', 'ui_status': 'Absent', 'config_status': 'Visible',
         'scenario': 'Stars missing', 'status': 'FAIL'},
    ],
    'overall_status': 'PASS',
})


def throttled():
    return ClientError({'Error': {'Code': 'ThrottlingException', 'Message': 'Too many tokens'}}, 'Converse')


def analyzer_with(*outcomes):
    sleep = SleepRecorder()
    client = FakeBedrockClient(*outcomes)
    analyzer = BedrockVisionAnalyzer(client=client, retry_policy=RATE_LIMIT_RETRY.with_sleep(sleep), mock=False)
    return analyzer, client, sleep


def analyze(analyzer, images=(b'one', b'two'), config=None, features=None):
    return asyncio.run(analyzer.analyze(list(images), config or {'is_show_ratings': '1'}, 'MASONRY', features))


def test_throttling_is_retried_with_backoff():
    analyzer, client, sleep = analyzer_with(throttled(), throttled(), SUCCESS)

    result = analyze(analyzer)

    assert sleep.delays == [5.0, 10.0]
    assert len(client.calls) == 3
    assert [row['feature'] for row in result['feature_results']] == ['Show Review Date', 'Show Review Ratings']


def test_overall_status_is_recomputed_from_rows():
    analyzer, _, _ = analyzer_with(SUCCESS)
    assert analyze(analyzer)['overall_status'] == 'FAIL'


def test_non_rate_limit_error_degrades_without_retry():
    denied = ClientError({'Error': {'Code': 'AccessDeniedException', 'Message': 'nope'}}, 'Converse')
    analyzer, client, sleep = analyzer_with(denied)

    result = analyze(analyzer, features=['Show Review Date', 'Inline CTA'])

    assert sleep.delays == []
    assert len(client.calls) == 1
    assert result['status'] == 'ERROR'
    assert result['overall_status'] == 'ERROR'
    assert [row['status'] for row in result['feature_results']] == ['UNKNOWN', 'UNKNOWN']
    assert [row['feature'] for row in result['feature_results']] == ['Show Review Date', 'Inline CTA']


def test_rate_limit_ceiling_degrades():
    analyzer, client, sleep = analyzer_with(*[throttled() for _ in range(6)])

    result = analyze(analyzer, features=['Show Review Date'])

    assert len(client.calls) == 6
    assert sleep.delays == [5.0, 10.0, 20.0, 40.0, 80.0]
    assert result['overall_status'] == 'ERROR'


def test_unparseable_response_degrades():
    analyzer, _, _ = analyzer_with('I could not see any widget.')
    assert analyze(analyzer)['status'] == 'ERROR'


def test_code_fenced_json_is_accepted():
    analyzer, _, _ = analyzer_with(f"```json\n{SUCCESS}\n```")
    assert len(analyze(analyzer)['feature_results']) == 2


def test_request_carries_prompt_and_every_image():
    analyzer, client, _ = analyzer_with(SUCCESS)
    analyze(analyzer, images=(b'one', b'', b'three'))

    content = client.calls[0]['messages'][0]['content']
    assert 'MASONRY' in content[0]['text']
    assert [block['image']['source']['bytes'] for block in content[1:]] == [b'one', b'three']


def test_mock_mode_never_passes():
    analyzer = BedrockVisionAnalyzer(mock=True)
    result = asyncio.run(analyzer.analyze([b'x'], {}, 'CAROUSEL_SLIDER'))
    assert result['mock'] is True
    assert result['overall_status'] == 'FAIL'
    assert all(row['status'] != 'PASS' for row in result['feature_results'])


class TestPrompt:
    def test_expected_status(self):
        config = {'is_show_ratings': '1', 'allow_to_display_feed_date': '0', 'show_full_review': '1'}
        assert prompt_builder.expected_status('Show Review Ratings', config) == 'Visible'
        assert prompt_builder.expected_status('Show Review Date', config) == 'Absent'
        assert prompt_builder.expected_status('Shorten Long Reviews / Read More', config) == 'Absent'
        assert prompt_builder.expected_status('Feedspace Branding', config) == 'N/A'
        assert prompt_builder.expected_status('Inline CTA', config) == 'Absent'

    def test_either_key_enables_border_feature(self):
        config = {'is_show_border': '0', 'is_show_shadow': 1}
        assert prompt_builder.expected_status('Review Card Border & Shadow', config) == 'Visible'

    def test_static_features_take_precedence(self):
        prompt = prompt_builder.build('AVATAR_GROUP', {'features': ['Inline CTA']}, ['Show Review Date'])
        assert 'Show Review Date' in prompt
        assert 'Inline CTA' not in prompt

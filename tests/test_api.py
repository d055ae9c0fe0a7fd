"""
Flask API with a stub agent
"""
import time
import uuid

import pytest

from api import routes
from api.app import create_app


class StubAgent:
    def __init__(self, record=None, error=None):
        self.execution_id = f'exec_{uuid.uuid4().hex[:8]}'
        self.record = record
        self.error = error
        self.calls = []
        self.closed = False

    async def validate_target(self, url, widget_type, configuration=None, static_features=None):
        self.calls.append((url, widget_type, configuration, static_features))
        if self.error:
            raise self.error
        return dict(self.record)

    async def close_browser(self):
        self.closed = True


RECORD = {
    'url': 'https://customer.example.com',
    'expectedType': 'MASONRY',
    'widgetType': 'MASONRY',
    'typeMatchResult': {'expected': 'MASONRY', 'detected': 'MASONRY', 'matched': True, 'reason': 'ok'},
    'capturedConfig': {},
    'images': ['a.png', 'b.png'],
    'movementVerdict': None,
    'aiAnalysis': {'overall_status': 'PASS', 'feature_results': []},
    'screenshotPath': 'a.png',
    'status': 'PASS',
}


@pytest.fixture
def project_root(tmp_path):
    (tmp_path / 'storage' / 'screenshots').mkdir(parents=True)
    return tmp_path


def make_client(project_root, agent):
    app = create_app({'TESTING': True, 'PROJECT_ROOT': project_root, 'AGENT_FACTORY': lambda: agent})
    return app.test_client()


def wait_for(execution_id, timeout=10):
    deadline = time.time() + timeout
    while routes.active_executions[execution_id]['status'] == 'running':
        assert time.time() < deadline, f'{execution_id} still running'
        time.sleep(0.02)


def test_health(project_root):
    response = make_client(project_root, StubAgent(RECORD)).get('/api/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_validate_runs_in_background(project_root):
    agent = StubAgent(RECORD)
    client = make_client(project_root, agent)

    response = client.post('/api/validate', json={
        'url': 'https://customer.example.com', 'type': 5, 'configuration': {'is_show_ratings': '1'},
    })
    assert response.status_code == 202
    execution_id = response.get_json()['execution_id']
    wait_for(execution_id)
    assert set(routes.active_executions[execution_id]) == {'status', 'url', 'type', 'started_at', 'results'}

    status = client.get(f'/api/executions/{execution_id}/status').get_json()
    assert status['status'] == 'PASS'
    assert status['screenshots_count'] == 2

    results = client.get(f'/api/executions/{execution_id}/results').get_json()
    assert results['widgetType'] == 'MASONRY'
    assert results['execution_id'] == execution_id
    assert (project_root / 'storage' / 'executions' / f'{execution_id}.json').exists()
    assert agent.calls == [('https://customer.example.com', 5, {'is_show_ratings': '1'}, None)]
    assert agent.closed


def test_results_survive_restart(project_root):
    client = make_client(project_root, StubAgent(RECORD))
    execution_id = client.post('/api/validate', json={'url': 'https://x.example', 'type': 5}).get_json()['execution_id']
    wait_for(execution_id)
    routes.active_executions.pop(execution_id)

    assert client.get(f'/api/executions/{execution_id}/results').get_json()['status'] == 'PASS'
    assert client.get(f'/api/executions/{execution_id}/status').get_json()['widget_type'] == 'MASONRY'


def test_crashed_execution_reports_error(project_root):
    client = make_client(project_root, StubAgent(error=RuntimeError('browser crashed')))
    execution_id = client.post('/api/validate', json={'url': 'https://x.example', 'type': 5}).get_json()['execution_id']
    wait_for(execution_id)

    status = client.get(f'/api/executions/{execution_id}/status').get_json()
    assert status['status'] == 'ERROR'
    assert status['error'] == 'browser crashed'


@pytest.mark.parametrize('payload', [{}, {'type': 5}, {'url': 'https://x.example'}])
def test_validate_requires_url_and_type(project_root, payload):
    response = make_client(project_root, StubAgent(RECORD)).post('/api/validate', json=payload)
    assert response.status_code == 400


def test_unknown_execution(project_root):
    client = make_client(project_root, StubAgent(RECORD))
    assert client.get('/api/executions/nope/status').status_code == 404
    assert client.get('/api/executions/nope/results').status_code == 404


def test_screenshots(project_root):
    (project_root / 'storage' / 'screenshots' / 'MASONRY_1.png').write_bytes(b'\x89PNG')
    client = make_client(project_root, StubAgent(RECORD))
    assert client.get('/api/screenshots/MASONRY_1.png').status_code == 200
    assert client.get('/api/screenshots/missing.png').status_code == 404
    assert client.get('/api/screenshots/../secrets.json').status_code == 404


def test_widget_types(project_root):
    data = make_client(project_root, StubAgent(RECORD)).get('/api/widget-types').get_json()
    assert {'id': 6, 'name': 'MARQUEE_STRIPE'} in data['types']
    assert data['aliases']['stripslider'] == 'MARQUEE_STRIPE'


def test_classify_html(project_root):
    client = make_client(project_root, StubAgent(RECORD))
    response = client.post('/api/classify-html', json={
        'html': '<div class="fe-masonry"></div>', 'expected': 5,
    })
    data = response.get_json()
    assert data['expected'] == 'MASONRY'
    assert data['candidates'][0]['variant'] == 'MASONRY'
    assert data['candidates'][0]['matches_expected'] is True
    assert client.post('/api/classify-html', json={}).status_code == 400

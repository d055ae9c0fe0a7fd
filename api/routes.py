"""API Routes"""
from flask import Blueprint, request, jsonify, current_app, send_file
import json
import asyncio
import logging
from datetime import datetime
import threading

from validator.widget_validation_agent import WidgetValidationAgent
from widgets.classify_html import classify
from widgets.taxonomy import WidgetTaxonomy

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__)
active_executions = {}


def _make_agent(project_root):
    factory = current_app.config.get('AGENT_FACTORY')
    if factory:
        return factory()
    return WidgetValidationAgent(screenshots_dir=str(project_root / 'storage' / 'screenshots'))


@bp.route('/validate', methods=['POST'])
def validate_widget():
    try:
        data = request.get_json(silent=True) or {}
        url = (data.get('url') or data.get('customer_url') or '').strip()
        widget_type = data.get('type', data.get('widget_type'))

        if not url:
            return jsonify({'error': 'url required'}), 400
        if widget_type is None:
            return jsonify({'error': 'type required'}), 400

        configuration = data.get('configuration') or {}
        static_features = data.get('features')

        # Get project root before threading
        project_root = current_app.config['PROJECT_ROOT']
        agent = _make_agent(project_root)
        execution_id = agent.execution_id

        active_executions[execution_id] = {
            'status': 'running',
            'url': url,
            'type': widget_type,
            'started_at': datetime.now().isoformat()
        }

        def run_execution():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            outcome = {}
            try:
                record = loop.run_until_complete(
                    agent.validate_target(url, widget_type, configuration, static_features)
                )
                record['execution_id'] = execution_id

                results_dir = project_root / 'storage' / 'executions'
                results_dir.mkdir(parents=True, exist_ok=True)
                with open(results_dir / f'{execution_id}.json', 'w') as f:
                    json.dump(record, f, indent=2)

                outcome = {'status': record['status'], 'results': record}
            except Exception as e:
                logger.error(f"❌ Execution {execution_id} crashed: {e}", exc_info=True)
                outcome = {'status': 'ERROR', 'error': str(e)}
            finally:
                try:
                    loop.run_until_complete(agent.close_browser())
                finally:
                    loop.close()
                    # Status leaves 'running' only once the browser is closed
                    active_executions[execution_id].update(outcome)

        threading.Thread(target=run_execution, daemon=True).start()

        return jsonify({
            'execution_id': execution_id,
            'status': 'started'
        }), 202
    except Exception as e:
        logger.error(f"❌ Could not start validation: {e}")
        return jsonify({'error': str(e)}), 500


def _load_results(execution_id):
    results_file = current_app.config['PROJECT_ROOT'] / 'storage' / 'executions' / f'{execution_id}.json'
    if results_file.exists():
        with open(results_file) as f:
            return json.load(f)
    return None


@bp.route('/executions/<execution_id>/status', methods=['GET'])
def get_execution_status(execution_id):
    exec_data = active_executions.get(execution_id)
    if exec_data is not None:
        response = {
            'execution_id': execution_id,
            'status': exec_data['status'],
            'url': exec_data['url'],
            'started_at': exec_data['started_at'],
            'error': exec_data.get('error')
        }
        if 'results' in exec_data:
            response['widget_type'] = exec_data['results'].get('widgetType')
            response['screenshots_count'] = len(exec_data['results'].get('images', []))
        return jsonify(response), 200

    results = _load_results(execution_id)
    if results is not None:
        return jsonify({
            'execution_id': execution_id,
            'status': results['status'],
            'url': results.get('url'),
            'widget_type': results.get('widgetType'),
            'screenshots_count': len(results.get('images', []))
        }), 200

    return jsonify({'error': 'Not found'}), 404


@bp.route('/executions/<execution_id>/results', methods=['GET'])
def get_execution_results(execution_id):
    exec_data = active_executions.get(execution_id)
    if exec_data is not None and 'results' in exec_data:
        return jsonify(exec_data['results']), 200
    if exec_data is not None and 'error' not in exec_data:
        # Still running
        return jsonify({'execution_id': execution_id, 'status': exec_data['status']}), 200

    results = _load_results(execution_id)
    if results is not None:
        return jsonify(results), 200

    return jsonify({'error': 'Not found'}), 404


@bp.route('/screenshots/<path:filename>', methods=['GET'])
def get_screenshot(filename):
    screenshots_dir = (current_app.config['PROJECT_ROOT'] / 'storage' / 'screenshots').resolve()
    path = (screenshots_dir / filename).resolve()
    if screenshots_dir in path.parents and path.exists():
        return send_file(path, mimetype='image/png')
    return jsonify({'error': 'Not found'}), 404


@bp.route('/widget-types', methods=['GET'])
def widget_types():
    taxonomy = WidgetTaxonomy.default()
    return jsonify({
        'types': [{'id': code, 'name': name} for code, name in sorted(taxonomy.codes.items())],
        'aliases': dict(taxonomy.aliases)
    }), 200


@bp.route('/classify-html', methods=['POST'])
def classify_html():
    """Classify widget candidates in a saved HTML page"""
    data = request.get_json(silent=True) or {}
    html = data.get('html', '')
    if not html:
        return jsonify({'error': 'html required'}), 400
    return jsonify(classify(html, data.get('expected'))), 200


@bp.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'healthy', 'architecture': 'Playwright + Bedrock vision'}), 200

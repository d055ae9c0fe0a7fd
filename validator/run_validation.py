"""
Batch runner - validates every target in a JSON file, one after another

    python -m validator.run_validation targets.json
"""
import argparse
import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv

from validator.resilience import RetryPolicy
from validator.widget_validation_agent import WidgetValidationAgent, save_results

logger = logging.getLogger(__name__)

URL_ATTEMPTS = 3
URL_RETRY_DELAY = 5.0


def load_targets(path: str) -> List[Dict[str, Any]]:
    with open(path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('targets', [])

    targets = []
    for entry in data:
        url = entry.get('url') or entry.get('customer_url')
        if not url:
            logger.warning(f"⚠️ Skipping target without url: {entry}")
            continue
        targets.append({
            'url': url,
            'type': entry.get('type', entry.get('widget_type')),
            'configuration': entry.get('configuration') or {},
        })
    return targets


class _FatalRecord(Exception):
    def __init__(self, record: Dict[str, Any]):
        super().__init__(record.get('reason', 'validation failed'))
        self.record = record


async def validate_with_retries(agent: WidgetValidationAgent, target: Dict[str, Any],
                                retry: RetryPolicy) -> Dict[str, Any]:
    """Re-runs a target in a fresh context while it keeps failing fatally"""

    async def attempt():
        try:
            record = await agent.validate_target(target['url'], target['type'], target['configuration'])
        except Exception as e:
            logger.error(f"❌ Agent crashed on {target['url']}: {e}", exc_info=True)
            record = {'url': target['url'], 'expectedType': target['type'], 'status': 'ERROR',
                      'reason': str(e), 'fatal': True}
        if record.get('fatal'):
            raise _FatalRecord(record)
        return record

    try:
        return await retry.run(attempt)
    except _FatalRecord as e:
        logger.error(f"❌ Failed to validate {target['url']} after {retry.max_attempts} attempts")
        return e.record


def summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
    summary = {'total': len(results), 'passed': 0, 'failed': 0, 'errors': 0}
    for result in results:
        status = result.get('status')
        if status == 'PASS':
            summary['passed'] += 1
        elif status == 'FAIL':
            summary['failed'] += 1
        else:
            summary['errors'] += 1
    return summary


async def run(targets: List[Dict[str, Any]], agent: WidgetValidationAgent,
              retry: RetryPolicy = None) -> Dict[str, Any]:
    retry = retry or RetryPolicy(URL_ATTEMPTS, URL_RETRY_DELAY, name='Target')
    results = []
    started = time.time()
    try:
        for i, target in enumerate(targets, 1):
            logger.info(f"\n{'=' * 60}\n[{i}/{len(targets)}] {target['url']}\n{'=' * 60}")
            record = await validate_with_retries(agent, target, retry)
            logger.info(f"  Result: {record.get('status')}")
            results.append(record)
    finally:
        await agent.close_browser()

    return {
        'summary': summarize(results),
        'duration': round(time.time() - started, 2),
        'results': results,
    }


def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    parser = argparse.ArgumentParser(description='Validate embedded review widgets on customer pages')
    parser.add_argument('targets', help='JSON file with a list of {url, type, configuration}')
    parser.add_argument('--screenshots-dir', default=None)
    parser.add_argument('--reports-dir', default=None)
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    args = parser.parse_args()

    targets = load_targets(args.targets)
    logger.info(f"🔍 {len(targets)} target(s) to validate")

    agent = WidgetValidationAgent(screenshots_dir=args.screenshots_dir,
                                  headless=False if args.headed else None)
    report = asyncio.run(run(targets, agent))

    path = save_results(report, Path(args.reports_dir) if args.reports_dir else None)
    summary = report['summary']
    logger.info(f"✅ Done: {summary['passed']} passed, {summary['failed']} failed, "
                f"{summary['errors']} errors. Report: {path}")


if __name__ == '__main__':
    main()

#!/usr/bin/env python3
"""
CLI tool to classify widget candidates in saved HTML
Usage: python -m widgets.classify_html --html <file_or_string> [--expected <type>]
"""

import argparse
import json
from pathlib import Path

from widgets.detector import WidgetDetector
from widgets.snapshot import build_snapshot, find_candidates
from widgets.taxonomy import WidgetTaxonomy


def classify(html: str, expected: str = None, taxonomy: WidgetTaxonomy = None) -> dict:
    taxonomy = taxonomy or WidgetTaxonomy.default()
    detector = WidgetDetector(taxonomy)
    expected_name = detector.identify({'type': expected}) if expected is not None else None

    candidates = []
    for index, element in enumerate(find_candidates(html, taxonomy)):
        result = detector.detect_snapshot(build_snapshot(element, taxonomy))
        candidates.append({
            'index': index,
            'tag': element.name,
            'classes': ' '.join(element.get('class') or []),
            'variant': result.variant,
            'tier': result.tier,
            'matches_expected': (result.known and detector.is_same_type(result.variant, expected_name))
            if expected_name else None,
        })

    return {
        'expected': expected_name,
        'candidates': candidates,
    }


def main():
    parser = argparse.ArgumentParser(description='Classify widget candidates in an HTML snapshot')
    parser.add_argument('--html', required=True, help='HTML file path or HTML string')
    parser.add_argument('--expected', help='Expected widget type (code, name or alias)')
    parser.add_argument('--json', action='store_true', help='Print raw JSON')

    args = parser.parse_args()

    html_content = args.html
    if Path(html_content).exists():
        print(f"📄 Reading HTML from file: {html_content}")
        html_content = Path(html_content).read_text(encoding='utf-8')

    report = classify(html_content, args.expected)

    if args.json:
        print(json.dumps(report, indent=2))
        return

    print(f"\n🔍 {len(report['candidates'])} widget candidate(s)")
    if report['expected']:
        print(f"   Expected: {report['expected']}")
    for c in report['candidates']:
        marker = ''
        if c['matches_expected'] is not None:
            marker = ' ✅' if c['matches_expected'] else ' ❌'
        print(f"  • [{c['index']}] <{c['tag']} class=\"{c['classes']}\"> -> {c['variant']} ({c['tier']}){marker}")


if __name__ == "__main__":
    main()

"""
Widget Detector - resolves a widget variant from a config record,
a live Playwright locator, or a static HTML fragment.

Priority for live elements:
    identifying attribute -> CSS signature -> anchor keyword -> anchor fallback
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from validator.errors import ClassificationAmbiguous, EvaluationTimeout
from widgets.taxonomy import UNKNOWN, WidgetTaxonomy

logger = logging.getLogger(__name__)

DISCOVER_TIMEOUT = 5.0  # seconds
PARENT_WALK_LIMIT = 25
SNIPPET_LENGTH = 800
CHILD_CLASS_LIMIT = 5

TIER_ATTRIBUTE = 'attribute'
TIER_SIGNATURE = 'signature'
TIER_ANCHOR_KEYWORD = 'anchor_keyword'
TIER_ANCHOR_FALLBACK = 'anchor_fallback'
TIER_NONE = 'none'

# Runs inside the page; returns the snapshot consumed by detect_snapshot()
SNAPSHOT_SCRIPT = """
(el, opts) => {
    const attrs = opts.attributes;
    const query = attrs.map(a => `[${a}]`).join(', ');
    const getAttr = (node) => {
        for (const a of attrs) {
            const v = node.getAttribute && node.getAttribute(a);
            if (v) return v;
        }
        return null;
    };

    // 1. Upward, bounded
    let id = null;
    let current = el;
    let depth = 0;
    while (current && current !== document.body && depth < opts.parentLimit) {
        id = getAttr(current);
        if (id) break;
        current = current.parentElement;
        depth++;
    }

    // Embedded document of a frame element
    if (!id && el.tagName && el.tagName.toLowerCase() === 'iframe') {
        try {
            const doc = el.contentDocument || el.contentWindow.document;
            const inner = doc && doc.querySelector(query);
            if (inner) id = getAttr(inner);
        } catch (e) { /* cross-origin */ }
    }

    // 2. Downward
    if (!id) {
        const child = el.querySelector(query);
        if (child) id = getAttr(child);
    }

    const classOf = (node) =>
        (node && node.className && typeof node.className === 'string') ? node.className : '';
    const childClasses = Array.from(el.children)
        .slice(0, opts.childLimit)
        .map(classOf)
        .join(' ');
    const allClasses = `${classOf(el.parentElement)} ${classOf(el)} ${childClasses}`.toLowerCase().trim();

    const isAnchor = !!(
        el.querySelector(opts.anchorSelectors.join(', ')) ||
        opts.anchorClasses.some(c => el.classList && el.classList.contains(c))
    );

    const html = el.innerHTML ? el.innerHTML.toLowerCase().substring(0, opts.snippetLength) : '';
    return { idAttr: id, allClasses, htmlSnippet: html, isAnchor };
}
"""


@dataclass(frozen=True)
class DetectionResult:
    variant: str
    tier: str = TIER_NONE

    @property
    def known(self) -> bool:
        return self.variant != UNKNOWN


def has_class_token(class_string: str, token: str) -> bool:
    """Exact whitespace-bounded token match: 'carousel_sliderwrap' never matches 'carousel_slider'."""
    if not class_string or not token:
        return False
    return re.search(rf'(^|\s){re.escape(token.lower())}(\s|$)', class_string.lower()) is not None


class WidgetDetector:
    """Classifier for widget variants"""

    def __init__(self, taxonomy: Optional[WidgetTaxonomy] = None, timeout: float = DISCOVER_TIMEOUT):
        self.taxonomy = taxonomy or WidgetTaxonomy.default()
        self.timeout = timeout

    def identify(self, config: Any) -> str:
        """Config-record path: widget_type_id / type -> canonical name or Unknown."""
        if not isinstance(config, dict):
            return UNKNOWN
        raw = config.get('widget_type_id')
        if raw is None:
            raw = config.get('type')
        return self.taxonomy.resolve(raw)

    def is_same_type(self, type_a: Optional[str], type_b: Optional[str]) -> bool:
        return self.taxonomy.canonical(type_a) == self.taxonomy.canonical(type_b)

    def type_id(self, name: Optional[str]) -> Optional[int]:
        return self.taxonomy.type_id(name)

    def _snapshot_options(self) -> Dict[str, Any]:
        return {
            'attributes': list(self.taxonomy.identifying_attributes),
            'anchorSelectors': list(self.taxonomy.anchor_inner_selectors),
            'anchorClasses': list(self.taxonomy.anchor_classes),
            'parentLimit': PARENT_WALK_LIMIT,
            'childLimit': CHILD_CLASS_LIMIT,
            'snippetLength': SNIPPET_LENGTH,
        }

    async def snapshot(self, locator) -> Optional[Dict[str, Any]]:
        """Collect the DOM snapshot, racing a hard timeout. None on timeout or evaluation error."""
        try:
            return await asyncio.wait_for(
                locator.evaluate(SNAPSHOT_SCRIPT, self._snapshot_options()),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"  ⚠️ {EvaluationTimeout('detect', f'widget snapshot exceeded {self.timeout}s', e)}")
        except Exception as e:
            logger.warning(f"  ⚠️ Widget snapshot evaluation failed: {e}")
        return None

    async def discover(self, locator) -> str:
        """Live-DOM path. Timeouts and evaluation errors degrade to Unknown."""
        if locator is None:
            return UNKNOWN
        info = await self.snapshot(locator)
        if not info:
            return UNKNOWN
        result = self.detect_snapshot(info)
        if not result.known:
            logger.info(f"  {ClassificationAmbiguous('detect', 'no detection tier matched this element')}")
        return result.variant

    def identify_html(self, html: str, selector: Optional[str] = None) -> str:
        """Offline path: classify a static HTML fragment with the same cascade."""
        from widgets.snapshot import snapshot_from_html

        info = snapshot_from_html(html, selector=selector, taxonomy=self.taxonomy)
        if not info:
            return UNKNOWN
        return self.detect_snapshot(info).variant

    def detect_snapshot(self, info: Dict[str, Any]) -> DetectionResult:
        """The classification cascade. First tier that produces a variant wins."""
        id_attr = info.get('idAttr')
        if id_attr is not None:
            resolved = self.taxonomy.resolve(str(id_attr))
            if resolved != UNKNOWN:
                return DetectionResult(resolved, TIER_ATTRIBUTE)

        classes = info.get('allClasses') or ''
        for tokens, variant in self.taxonomy.signatures:
            if any(has_class_token(classes, token) for token in tokens):
                return DetectionResult(variant, TIER_SIGNATURE)

        if info.get('isAnchor'):
            html = (info.get('htmlSnippet') or '').lower()
            for keywords, variant in self.taxonomy.anchor_keyword_hints:
                if any(keyword in html for keyword in keywords):
                    return DetectionResult(variant, TIER_ANCHOR_KEYWORD)
            # Guess for scrolling widgets; configurable via WidgetTaxonomy.anchor_fallback
            return DetectionResult(self.taxonomy.anchor_fallback, TIER_ANCHOR_FALLBACK)

        return DetectionResult(UNKNOWN, TIER_NONE)

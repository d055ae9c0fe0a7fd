"""
Widget Validation Agent - Playwright + Bedrock vision
Finds the embedded widget on a page, classifies it, drives the interaction
sequence for its variant and sends the evidence to the vision model.
"""
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from playwright.async_api import async_playwright, Browser, Page, Playwright

from validator.errors import ContextClosed, NavigationFailure
from validator.feature_registry import FeatureRegistry, get_registry
from validator.interactions import MOVEMENT_FEATURES, strategy_for
from validator.interactions.base import MovementVerdict, capture, is_closed, is_visible, settle
from validator.resilience import NAVIGATION_RETRY, RetryPolicy, try_wait
from validator.vision import BedrockVisionAnalyzer
from widgets.detector import WidgetDetector
from widgets.taxonomy import FLOATING_TOAST, UNKNOWN, WIDGET_NOT_FOUND, WidgetTaxonomy

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

GOTO_TIMEOUT = 90000
LOAD_TIMEOUT = 30000
EMBED_SCRIPT_TIMEOUT = 15000
EMBED_SETTLE_MS = 2000
WIDGET_ATTACH_TIMEOUT = 30000
VIEWPORT = {'width': 1920, 'height': 1080}
USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
              '(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36')

# Hidden before capture; widget elements themselves are never hidden
DISTRACTION_SELECTORS = [
    '.trustpilot-widget',
    '[id*="trustpilot"]',
    '.chat-bubble',
    '.iubenda-cs-container',
    '#iubenda-cs-banner',
    '[id*="cookie"]',
    '[class*="cookie"]',
    '.popup-overlay',
    '.modal-backdrop',
    '.virtual-tour',
]

HIDE_DISTRACTIONS_SCRIPT = """
(selectors) => {
    selectors.forEach(sel => {
        try {
            document.querySelectorAll(sel).forEach(el => {
                const cls = (el.className && typeof el.className === 'string') ? el.className.toLowerCase() : '';
                if (!cls.includes('fe-') && !cls.includes('feedspace')) {
                    el.style.setProperty('display', 'none', 'important');
                }
            });
        } catch (e) { }
    });
}
"""

SLOW_SCROLL_SCRIPT = """
async () => {
    const height = document.body.scrollHeight;
    const steps = 20;
    for (let i = 0; i <= steps; i++) {
        window.scrollTo({ top: i * (height / steps), behavior: 'smooth' });
        await new Promise(r => setTimeout(r, 100));
    }
    await new Promise(r => setTimeout(r, 1000));
}
"""


class DispatchState(str, Enum):
    NAVIGATING = 'NAVIGATING'
    AWAITING_WIDGET = 'AWAITING_WIDGET'
    CLASSIFYING_CANDIDATES = 'CLASSIFYING_CANDIDATES'
    RECONCILING = 'RECONCILING'
    INTERACTING = 'INTERACTING'
    CAPTURING_CONTEXT = 'CAPTURING_CONTEXT'
    DONE = 'DONE'
    ERRORED = 'ERRORED'


@dataclass(frozen=True)
class TypeMatchVerdict:
    expected: str
    detected: str
    matched: bool
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {'expected': self.expected, 'detected': self.detected,
                'matched': self.matched, 'reason': self.reason}


@dataclass
class EvidenceBundle:
    images: List[bytes] = field(default_factory=list)
    movement: Optional[MovementVerdict] = None

    def add(self, image: Optional[bytes]):
        if image:
            self.images.append(image)


@dataclass
class TargetSession:
    """Per-target state, owned by the agent for the duration of one target"""
    url: str
    config: Dict[str, Any]
    expected_type: str
    widget_type: str = UNKNOWN
    type_match: Optional[TypeMatchVerdict] = None
    bundle: EvidenceBundle = field(default_factory=EvidenceBundle)
    state: DispatchState = DispatchState.NAVIGATING
    history: List[DispatchState] = field(default_factory=list)

    def transition(self, state: DispatchState):
        self.state = state
        self.history.append(state)
        logger.info(f"  ➡️ {state.value}")


class WidgetValidationAgent:
    """
    Visual QA for embedded review widgets
    - Playwright for the page
    - WidgetDetector for classification
    - Bedrock for feature scoring
    """

    def __init__(self, taxonomy: Optional[WidgetTaxonomy] = None,
                 analyzer: Optional[BedrockVisionAnalyzer] = None,
                 feature_registry: Optional[FeatureRegistry] = None,
                 screenshots_dir: Optional[str] = None,
                 navigation_retry: RetryPolicy = NAVIGATION_RETRY,
                 headless: Optional[bool] = None,
                 widget_host: Optional[str] = None):
        self.taxonomy = taxonomy or WidgetTaxonomy.default()
        self.detector = WidgetDetector(self.taxonomy)
        self.analyzer = analyzer or BedrockVisionAnalyzer()
        self.feature_registry = feature_registry or get_registry()
        self.navigation_retry = navigation_retry
        self.widget_host = widget_host or os.getenv('WIDGET_HOST', 'feedspace.io')
        if headless is None:
            headless = os.getenv('HEADLESS', '1') != '0'
        self.headless = headless

        self.screenshots_dir = Path(screenshots_dir) if screenshots_dir else PROJECT_ROOT / 'storage' / 'screenshots'
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)

        self.execution_id = f"exec_{uuid.uuid4().hex[:8]}"
        self.last_session: Optional[TargetSession] = None

        # Playwright
        self.playwright: Playwright = None
        self.browser: Browser = None

    async def start_browser(self):
        """Launch Playwright browser"""
        logger.info("Launching Chromium browser...")
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.headless,
            args=[
                '--no-sandbox',
                '--disable-setuid-sandbox',
                '--disable-dev-shm-usage',
                '--disable-blink-features=AutomationControlled',
            ],
            ignore_default_args=['--enable-automation'],
        )
        logger.info("Browser ready")

    async def close_browser(self):
        """Cleanup"""
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()

    async def validate_target(self, url: str, widget_type: Any, configuration: Optional[Dict[str, Any]] = None,
                              static_features: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Validate one target in a fresh browser context.

        Always returns a record; navigation failure after all retries comes
        back as an ERROR record with ``fatal`` set so a batch caller can retry.
        """
        config = configuration if isinstance(configuration, dict) else {}
        expected = self.detector.identify({'type': widget_type})
        session = TargetSession(url=url, config=config, expected_type=expected)
        self.last_session = session
        logger.info(f"🔍 Target {url}: expected widget type {expected} (ID: {widget_type})")

        if static_features is None and expected != UNKNOWN:
            static_features = self.feature_registry.get_features(expected)

        context = None
        try:
            if self.browser is None:
                await self.start_browser()
            context = await self.browser.new_context(
                viewport=VIEWPORT,
                device_scale_factor=1,
                user_agent=USER_AGENT,
                locale='en-US',
                extra_http_headers={'Accept-Language': 'en-US,en;q=0.9'},
            )
            page = await context.new_page()
            await self.navigate(page, session)
            return await self.validate_widget(page, session, static_features)
        except NavigationFailure as e:
            logger.error(f"❌ {e}")
            return self.build_error_result(session, str(e), fatal=True)
        except Exception as e:
            logger.error(f"❌ Unexpected error validating {url}: {e}", exc_info=True)
            return self.build_error_result(session, str(e), fatal=True)
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"⚠️ Could not close browser context: {e}")

    async def navigate(self, page: Page, session: TargetSession):
        session.transition(DispatchState.NAVIGATING)

        async def goto():
            logger.info(f"Navigate: {session.url}")
            await page.goto(session.url, wait_until='domcontentloaded', timeout=GOTO_TIMEOUT)

        try:
            await self.navigation_retry.run(goto)
        except Exception as e:
            raise NavigationFailure('navigate', f"Could not load {session.url}: {e}", e)

        if not await try_wait(page.wait_for_load_state('load', timeout=LOAD_TIMEOUT)):
            logger.info("  'load' event timed out - proceeding")

        # The widget is injected by the embed script
        host = self.widget_host
        embed_loaded = await try_wait(page.wait_for_event(
            'response',
            predicate=lambda response: host in response.url and response.status == 200,
            timeout=EMBED_SCRIPT_TIMEOUT,
        ))
        if not embed_loaded:
            logger.info("  Embed script not detected in time - proceeding")
        await settle(page, EMBED_SETTLE_MS)

    async def select_widget(self, page: Page, candidates: List, session: TargetSession) -> Tuple[Any, str]:
        """First candidate equivalent to the expected type, else first visible, else first attached"""
        classified: Dict[int, str] = {}

        async def variant_of(index: int) -> str:
            if index not in classified:
                classified[index] = await self.detector.discover(candidates[index])
            return classified[index]

        expected = session.expected_type
        for index in range(len(candidates)):
            if is_closed(page):
                raise ContextClosed('classify', 'Page closed during classification')
            variant = await variant_of(index)
            logger.info(f"  Candidate {index} discovered as: {variant}")
            if variant != UNKNOWN and self.detector.is_same_type(variant, expected):
                logger.info(f"  ✅ Precision match: {variant} matches expected {expected}")
                return candidates[index], variant

        logger.info(f"  No precise match for {expected} - falling back...")
        session.transition(DispatchState.RECONCILING)

        for index, candidate in enumerate(candidates):
            if await is_visible(candidate):
                variant = await variant_of(index)
                logger.warning(f"  ⚠️ Fallback: first visible widget ({variant})")
                return candidate, variant

        variant = await variant_of(0)
        logger.warning(f"  ⚠️ Fallback: first attached widget ({variant})")
        return candidates[0], variant

    def reconcile(self, session: TargetSession, detected: str) -> TypeMatchVerdict:
        if session.state != DispatchState.RECONCILING:
            session.transition(DispatchState.RECONCILING)

        matched = detected != UNKNOWN and self.detector.is_same_type(detected, session.expected_type)
        reason = ('Widget type on page matches config' if matched
                  else f"Config says {session.expected_type} but page has {detected}")
        verdict = TypeMatchVerdict(session.expected_type, detected, matched, reason)

        session.type_match = verdict
        session.widget_type = detected if detected != UNKNOWN else session.expected_type
        logger.info(f"  Type match: {'✅ PASS' if matched else '❌ FAIL'} - {reason}")
        return verdict

    async def resolve_context(self, locator) -> Tuple[Any, Any]:
        """(interaction context, widget handle) - switches into the frame for iframe embeds"""
        try:
            tag = await locator.evaluate("el => el.tagName.toLowerCase()")
        except Exception:
            tag = ''
        if tag == 'iframe':
            try:
                handle = await locator.element_handle()
                frame = await handle.content_frame() if handle else None
                if frame:
                    logger.info("  Widget is inside an iframe - switching context")
                    return frame, frame.locator('body')
            except Exception as e:
                logger.warning(f"  ⚠️ Could not enter iframe: {e}")
        return None, locator

    async def hide_distractions(self, page: Page):
        try:
            await page.evaluate(HIDE_DISTRACTIONS_SCRIPT, DISTRACTION_SELECTORS)
        except Exception as e:
            logger.warning(f"  ⚠️ Could not hide distractions: {e}")

    async def slow_scroll_to_find(self, page: Page):
        """Smooth scroll so lazy-loaded widgets render"""
        if is_closed(page):
            return
        logger.info("  Smooth scrolling to find widget...")
        try:
            await page.evaluate(SLOW_SCROLL_SCRIPT)
        except Exception as e:
            logger.warning(f"  ⚠️ Scroll failed: {e}")

    async def validate_widget(self, page: Page, session: TargetSession,
                              static_features: Optional[List[str]] = None) -> Dict[str, Any]:
        """Find, classify and interact with the widget, then run vision analysis"""
        if is_closed(page):
            return self.build_error_result(session, 'Page closed before validation')

        bundle = session.bundle
        locator = None

        try:
            session.transition(DispatchState.AWAITING_WIDGET)
            selector = self.taxonomy.selector_string
            if not await try_wait(page.wait_for_selector(selector, state='attached', timeout=WIDGET_ATTACH_TIMEOUT)):
                logger.warning("  ⚠️ Timeout waiting for widget - it may not be on this page")

            all_matches = page.locator(selector)
            count = await all_matches.count()

            if count == 0:
                logger.warning("  ⚠️ No widget found on page")
                session.widget_type = WIDGET_NOT_FOUND
                session.type_match = TypeMatchVerdict(
                    session.expected_type, WIDGET_NOT_FOUND, False,
                    'No widget selectors found on the page - widget may not be embedded or is loaded in an iframe',
                )
                bundle.add(await capture(page, page, 'whole page (widget not found)', full_page=True))
                # The whole-page shot doubles as the context capture
                session.transition(DispatchState.CAPTURING_CONTEXT)
                return await self.finalize(session, static_features)

            logger.info(f"  Found {count} candidate(s) - scanning for {session.expected_type}")
            session.transition(DispatchState.CLASSIFYING_CANDIDATES)
            candidates = await all_matches.all()
            locator, detected = await self.select_widget(page, candidates, session)
            self.reconcile(session, detected)

            if is_closed(page):
                return self.build_error_result(session, 'Page closed during setup')

            await page.set_viewport_size(VIEWPORT)
            await self.hide_distractions(page)

            if session.widget_type != FLOATING_TOAST:
                await self.slow_scroll_to_find(page)
            try:
                await locator.scroll_into_view_if_needed(timeout=5000)
            except Exception as e:
                logger.debug(f"  scroll into view failed: {e}")
            await settle(page, 1000)

            try:
                box = await locator.bounding_box()
            except Exception:
                box = None
            if box:
                logger.info(f"  Widget bounds: {round(box['width'])}x{round(box['height'])}")
            else:
                logger.info("  Widget bounds: Unknown")

            session.transition(DispatchState.INTERACTING)
            if is_closed(page):
                return self.build_error_result(session, 'Page closed before interaction')

            frame, widget = await self.resolve_context(locator)
            context = frame or page
            strategy = strategy_for(session.widget_type)
            if strategy:
                result = await strategy(context, widget, session.config, page=page)
                for image in result.images:
                    bundle.add(image)
                bundle.movement = result.movement
            else:
                logger.info(f"  No interaction strategy for {session.widget_type} - default capture")

            if not bundle.images:
                bundle.add(await capture(locator, page, 'widget element', animations='disabled'))

            if is_closed(page) and not bundle.images:
                return self.build_error_result(session, 'Page closed during interaction')

            session.transition(DispatchState.CAPTURING_CONTEXT)
            if not is_closed(page):
                logger.info("  📸 Capturing full page context for AI...")
                bundle.add(await capture(page, page, 'full page context', full_page=True, animations='disabled'))

        except ContextClosed as e:
            logger.error(f"❌ {e}")
            return self.build_error_result(session, f"Page closed: {e.reason}")
        except Exception as e:
            logger.error(f"❌ Validation error: {e}")
            if not bundle.images and not is_closed(page):
                bundle.add(await capture(page, page, 'fallback full page', full_page=True))

        if not bundle.images and locator is not None:
            bundle.add(await capture(locator, page, 'fallback widget element'))

        if not bundle.images and is_closed(page):
            return self.build_error_result(session, 'Page closed during interaction')

        return await self.finalize(session, static_features)

    def save_images(self, session: TargetSession) -> List[str]:
        timestamp = int(time.time() * 1000)
        label = session.widget_type if session.widget_type != UNKNOWN else session.expected_type
        label = label.replace(' ', '_')
        images = session.bundle.images

        saved = []
        for i, image in enumerate(images):
            suffix = f"_part{i + 1}" if len(images) > 1 else ''
            path = self.screenshots_dir / f"{label}_{timestamp}{suffix}.png"
            path.write_bytes(image)
            saved.append(str(path))
            logger.info(f"  💾 Screenshot saved: {path}")
        return saved

    async def finalize(self, session: TargetSession, static_features: Optional[List[str]]) -> Dict[str, Any]:
        """Save evidence, run vision analysis, merge the movement and type verdicts"""
        saved_paths = self.save_images(session)
        movement = session.bundle.movement

        ai_results = await self.analyzer.analyze(
            session.bundle.images, session.config, session.widget_type, static_features,
        )

        if isinstance(ai_results, dict) and isinstance(ai_results.get('feature_results'), list):
            if movement is not None:
                status = movement.status
                ai_results['feature_results'].append({
                    'feature': MOVEMENT_FEATURES.get(session.widget_type, 'Scrolling Animation'),
                    'ui_status': 'Visible' if status == 'PASS' else 'Absent',
                    'config_status': 'Visible',
                    'scenario': movement.message,
                    'status': 'FAIL' if status in ('ERROR', 'UNKNOWN') else status,
                })
                if status in ('FAIL', 'ERROR') and ai_results.get('overall_status') != 'ERROR':
                    ai_results['overall_status'] = 'FAIL'

            if session.type_match is not None:
                ai_results['feature_results'].insert(0, {
                    'feature': 'Widget Type Identification',
                    'ui_status': session.type_match.detected,
                    'config_status': session.type_match.expected,
                    'scenario': session.type_match.reason,
                    'status': 'PASS' if session.type_match.matched else 'FAIL',
                })
                if not session.type_match.matched and ai_results.get('overall_status') != 'ERROR':
                    ai_results['overall_status'] = 'FAIL'

        status = 'UNKNOWN'
        if isinstance(ai_results, dict):
            status = ai_results.get('overall_status') or ai_results.get('status') or 'UNKNOWN'

        session.transition(DispatchState.DONE)
        return {
            'url': session.url,
            'expectedType': session.expected_type,
            'widgetType': session.widget_type,
            'typeMatchResult': session.type_match.to_dict() if session.type_match else None,
            'capturedConfig': session.config,
            'images': saved_paths,
            'movementVerdict': movement.to_dict() if movement else None,
            'aiAnalysis': ai_results,
            'screenshotPath': saved_paths[0] if saved_paths else None,
            'status': status,
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        }

    def build_error_result(self, session: TargetSession, reason: str, fatal: bool = False) -> Dict[str, Any]:
        """Standard record for an early exit; no images, no analysis"""
        session.transition(DispatchState.ERRORED)
        return {
            'url': session.url,
            'expectedType': session.expected_type,
            'widgetType': 'Error',
            'typeMatchResult': TypeMatchVerdict(session.expected_type, 'Error', False, reason).to_dict(),
            'capturedConfig': session.config,
            'images': [],
            'movementVerdict': None,
            'aiAnalysis': None,
            'screenshotPath': None,
            'status': 'ERROR',
            'reason': reason,
            'fatal': fatal,
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        }


def save_results(results: Dict[str, Any], results_dir: Optional[Path] = None, name: Optional[str] = None) -> Path:
    """Write a run's results as JSON under storage/reports"""
    results_dir = Path(results_dir) if results_dir else PROJECT_ROOT / 'storage' / 'reports'
    results_dir.mkdir(parents=True, exist_ok=True)
    path = results_dir / f"{name or f'run_{int(time.time())}'}.json"
    with open(path, 'w') as f:
        json.dump(results, f, indent=2)
    return path

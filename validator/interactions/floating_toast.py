"""
Floating toast: capture the preview card, expand it, capture the modal
"""
import logging

from validator.interactions.base import (
    InteractionResult, capture, close_popup, is_closed, is_visible, page_of, settle, step,
)
from validator.resilience import try_wait

logger = logging.getLogger(__name__)

PREVIEW_SELECTORS = [
    '.fe-floating-preview',
    '.fe-toast-card',
    '.fe-floating-toast',
    '[class*="floating-toast"]',
    '[class*="toast-preview"]',
    '.feedspace-toast',
    '.feedspace-card',
    '.fe-chat-bubble',
    '.fe-bubble-launcher',
    '[class*="chat-box"]',
]

EXPANDED_SELECTORS = [
    '.fe-review-box',
    '.fe-review-box-inner',
    '.fe-modal-content',
    '[class*="review-box"]',
    '.feedspace-expanded-review',
]

CLOSE_SELECTORS = [
    '.fe-review-box-close-icon',
    '[class*="close-icon"]',
    '[class*="close-btn"]',
    'button:has-text("X")',
    '.fe-modal-close',
]

WIDGET_SCOPE_TIMEOUT = 5000
PAGE_SCOPE_TIMEOUT = 3000
EXPANDED_TIMEOUT = 8000


async def find_preview(widget, page):
    selector = ', '.join(PREVIEW_SELECTORS)
    preview = widget.locator(selector).filter(visible=True).first
    if await is_visible(preview):
        return preview

    logger.info(f"  Waiting for preview card ({WIDGET_SCOPE_TIMEOUT // 1000}s)...")
    if await try_wait(preview.wait_for(state='visible', timeout=WIDGET_SCOPE_TIMEOUT)):
        return preview

    preview = page.locator(selector).filter(visible=True).first
    if await try_wait(preview.wait_for(state='visible', timeout=PAGE_SCOPE_TIMEOUT)):
        return preview
    return None


async def interact(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("💬 Floating toast: starting preview/expand sequence")
    page = page or page_of(context)
    result = InteractionResult()

    if is_closed(page):
        return result

    try:
        preview = await find_preview(widget, page)
        if preview is None:
            logger.warning("  ⚠️ No visible preview card, taking default screenshot")
            result.add(await capture(page, page, 'toast fallback', full_page=True))
            return result

        result.add(await capture(page, page, 'toast preview', full_page=True, animations='disabled'))

        await step("preview hover", preview.hover(force=True))
        await step("preview click", preview.click(force=True, timeout=5000))
        await step("preview synthetic click", preview.dispatch_event('click'))

        expanded = page.locator(', '.join(EXPANDED_SELECTORS)).filter(visible=True).first
        await try_wait(expanded.wait_for(state='visible', timeout=EXPANDED_TIMEOUT))
        await settle(page, 2000)

        if await is_visible(expanded):
            logger.info("  ✅ Expanded modal visible")
            result.add(await capture(expanded, page, 'toast expanded modal', animations='disabled'))
            await close_popup(page, page, expanded, CLOSE_SELECTORS)
            await settle(page, 2000)
        else:
            logger.warning("  ⚠️ Expanded modal did not appear")

    except Exception as e:
        logger.error(f"  ❌ Floating toast error: {e}")

    if not result.images:
        result.add(await capture(page, page, 'toast last resort', full_page=True))

    return result

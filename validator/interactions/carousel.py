"""
Carousel slider: timed multi-shot capture to catch auto-rotation
"""
import logging

from validator.interactions.base import InteractionResult, capture, is_closed, page_of, settle
from validator.resilience import try_wait

logger = logging.getLogger(__name__)

# Real review cards, not the "Loading reviews..." placeholder
CONTENT_SELECTOR = (
    '.feedspace-embed-card, .feedspace-review-card, '
    '.swiper-slide:not([class*="loading"]), .slick-slide:not([class*="loading"])'
)
CONTENT_VISIBLE_TIMEOUT = 20000
CONTENT_ATTACHED_TIMEOUT = 5000
STABILIZE_MS = 5000
SHOT_GAP_MS = 3000


async def interact(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("🎠 Carousel: starting timed capture sequence")
    page = page or page_of(context)
    result = InteractionResult()

    try:
        if is_closed(page):
            return result

        try:
            await widget.evaluate("el => el.scrollIntoView({behavior: 'smooth', block: 'center'})")
        except Exception as e:
            logger.warning(f"  ⚠️ Could not scroll carousel into view: {e}")
        await settle(page, 2000)

        content = context.locator(CONTENT_SELECTOR).first
        if await try_wait(content.wait_for(state='visible', timeout=CONTENT_VISIBLE_TIMEOUT)):
            logger.info("  ✅ Review content detected")
        else:
            logger.warning("  ⚠️ Review content not visible in time, checking presence...")
            if not await try_wait(content.wait_for(state='attached', timeout=CONTENT_ATTACHED_TIMEOUT)):
                logger.warning("  ⚠️ Still no content, proceeding with best-effort capture")

        await settle(page, STABILIZE_MS)

        logger.info("  Capture 1/3: entire page")
        result.add(await capture(page, page, 'carousel full page', full_page=True, animations='disabled'))
        await settle(page, SHOT_GAP_MS)

        logger.info("  Capture 2/3: widget")
        result.add(await capture(widget, page, 'carousel widget #1', animations='disabled', scale='css'))
        await settle(page, SHOT_GAP_MS)

        logger.info("  Capture 3/3: widget")
        result.add(await capture(widget, page, 'carousel widget #2', animations='disabled', scale='css'))

    except Exception as e:
        logger.warning(f"  ⚠️ Carousel interaction warning: {e}")

    logger.info(f"  Carousel done, {len(result.images)} screenshot(s)")
    return result

"""
Avatar group: click avatars to reveal review popups

Per avatar: close open popup -> scroll -> click -> wait visible -> settle ->
capture -> click outside (close button fallback) -> wait hidden -> settle
"""
import logging
from typing import List

from validator.interactions.base import (
    InteractionResult, capture, click_outside, close_popup, is_closed, is_visible, page_of, settle,
)
from validator.resilience import try_wait

logger = logging.getLogger(__name__)

AVATAR_SELECTORS = [
    '.fe-avatar-box',
    '.large-avatar-box',
    '.fe-avatar',
    '[class*="avatar-box"]',
    '[class*="avatar-item"]',
    '.feedspace-avatar',
    'div:has(.feedspace-initials)',
]

REVIEW_BOX_SELECTORS = [
    '.fe-review-box',
    '.fe-review-box-inner',
    '[class*="review-box"]',
    '[class*="popup"]',
    '.fe-review-box-content',
]

CLOSE_SELECTORS = ['.fe-review-box-close', '.close-btn', '[class*="close"]', '.fe-modal-close']

MAX_AVATARS = 5
# First and third avatar
TARGET_INDICES = (0, 2)
POPUP_VISIBLE_TIMEOUT = 6000
POPUP_HIDDEN_TIMEOUT = 4000


async def unique_visible_avatars(widget) -> List:
    """Visible avatars deduplicated by data-feed-id; avatars without one are kept by position"""
    candidates = await widget.locator(', '.join(AVATAR_SELECTORS)).all()
    logger.info(f"  Found {len(candidates)} potential avatar elements")

    avatars = []
    seen_feed_ids = set()
    for candidate in candidates:
        try:
            if not await candidate.is_visible():
                continue
            feed_id = await candidate.get_attribute('data-feed-id')
            if feed_id:
                if feed_id in seen_feed_ids:
                    continue
                seen_feed_ids.add(feed_id)
            avatars.append(candidate)
        except Exception as e:
            logger.debug(f"  skipping avatar candidate: {e}")

        if len(avatars) >= MAX_AVATARS:
            break

    return avatars


async def capture_popup(context, page):
    """High-res shot of the open review box, viewport if it is not visible"""
    popup = context.locator(', '.join(REVIEW_BOX_SELECTORS[:3])).filter(visible=True).first
    if await is_visible(popup):
        return await capture(popup, page, 'avatar review popup', animations='disabled')
    return await capture(page, page, 'avatar viewport', full_page=False, animations='disabled')


async def interact(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("👥 Avatar group: starting avatar clicks")
    page = page or page_of(context)
    result = InteractionResult()

    if is_closed(page):
        return result

    try:
        await widget.scroll_into_view_if_needed(timeout=3000)
        result.add(await capture(widget, page, 'avatars only', timeout=5000))
    except Exception as e:
        logger.warning(f"  ⚠️ Failed to capture avatars-only shot: {e}")

    try:
        avatars = await unique_visible_avatars(widget)
    except Exception as e:
        logger.warning(f"  ⚠️ Avatar lookup failed: {e}")
        return result

    logger.info(f"  {len(avatars)} unique avatar(s) visible")
    indices = [i for i in TARGET_INDICES if i < len(avatars)]
    review_box = context.locator(', '.join(REVIEW_BOX_SELECTORS)).first

    for step, index in enumerate(indices, start=1):
        if is_closed(page):
            logger.warning("  ⚠️ Page closed, stopping avatar interaction")
            break

        avatar = avatars[index]
        try:
            logger.info(f"  Avatar index {index} ({step}/{len(indices)})")

            if await is_visible(review_box):
                logger.info("  Closing leftover popup")
                await click_outside(page)
                await settle(page, 500)
                if await is_visible(review_box):
                    await close_popup(context, page, review_box, CLOSE_SELECTORS)
                await try_wait(review_box.wait_for(state='hidden', timeout=3000))
                await settle(page, 800)

            try:
                await avatar.scroll_into_view_if_needed(timeout=3000)
            except Exception:
                await avatar.evaluate("el => el.scrollIntoView({block: 'center', inline: 'center'})")
            await settle(page, 500)

            img = avatar.locator('img').first
            if await img.count() and await is_visible(img):
                await img.click(force=True, timeout=3000)
            else:
                await avatar.click(force=True, timeout=3000)

            if await try_wait(review_box.wait_for(state='visible', timeout=POPUP_VISIBLE_TIMEOUT)):
                logger.info(f"  ✅ Review popup revealed for avatar {index + 1}")
            else:
                logger.warning(f"  ⚠️ Popup did not appear for avatar {index + 1}")

            await settle(page, 1500)
            result.add(await capture_popup(context, page))

            await click_outside(page)
            if not await try_wait(review_box.wait_for(state='hidden', timeout=POPUP_HIDDEN_TIMEOUT)):
                logger.info("  Click outside did not close popup, trying close button")
                await close_popup(context, page, review_box, CLOSE_SELECTORS)
                await try_wait(review_box.wait_for(state='hidden', timeout=2000))

            await settle(page, 1000)

        except Exception as e:
            logger.warning(f"  ⚠️ Avatar interaction {index + 1} failed: {e}")

    logger.info(f"  Avatar group done, {len(result.images)} screenshot(s)")
    return result

"""
Card-popup slider (marquee stripe / single slider): click review cards to
open their popups and capture each one in full viewport context
"""
import logging
from typing import List

from validator.interactions.base import (
    POPUP_SELECTORS, InteractionResult, capture, close_popup, is_closed, is_visible, page_of, settle, step,
)

logger = logging.getLogger(__name__)

CARD_SELECTORS = [
    '.feedspace-marquee-box',
    '.feedspace-element-feed-box',
    'div[data-feed-id]',
    'div[data-review-id]',
    '.feedspace-marquee-box-inner',
    '.feedspace-review-bio-img',
    '.feedspace-marquee-left',
    '[data-testid="review-card"]',
]

MAX_CARDS = 3
HOVER_SETTLE_MS = 1000
POPUP_WAIT_MS = 2000
NEXT_CARD_MS = 1000


async def pick_cards(cards: List, limit: int = MAX_CARDS) -> List:
    """Cards with a unique feed/review id first, then evenly spaced indices"""
    targets = []
    seen_ids = set()

    for card in cards:
        if len(targets) >= limit:
            break
        try:
            unique_id = await card.get_attribute('data-feed-id') or await card.get_attribute('data-review-id')
        except Exception:
            unique_id = None
        if unique_id and unique_id not in seen_ids:
            seen_ids.add(unique_id)
            targets.append(card)

    if len(targets) < limit and len(cards) > len(targets):
        step = max(1, len(cards) // 4)
        for i in range(0, len(cards), step):
            if len(targets) >= limit:
                break
            if not any(cards[i] is t for t in targets):
                targets.append(cards[i])

    return targets


async def find_popup(context, page):
    selector = ', '.join(POPUP_SELECTORS)
    popup = context.locator(selector).filter(visible=True).first
    if not await is_visible(popup) and context is not page:
        popup = page.locator(selector).filter(visible=True).first
    return popup


async def interact(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("🎞️ Card popup slider: starting card clicks")
    page = page or page_of(context)
    result = InteractionResult()

    if is_closed(page):
        return result

    try:
        result.add(await capture(page, page, 'initial full page', full_page=True))

        cards = await context.locator(', '.join(CARD_SELECTORS)).filter(visible=True).all()
        logger.info(f"  {len(cards)} visible card element(s)")
        targets = await pick_cards(cards)
        logger.info(f"  Selected {len(targets)} distinct card(s)")

        for number, card in enumerate(targets, start=1):
            if is_closed(page):
                logger.warning("  ⚠️ Page closed, stopping card interaction")
                break
            try:
                # Hover pauses the marquee
                await step("hover", card.hover(force=True))
                await settle(page, HOVER_SETTLE_MS)

                await step("click", card.click(force=True, timeout=5000))
                await step("synthetic click", card.dispatch_event('click'))

                await settle(page, POPUP_WAIT_MS)

                popup = await find_popup(context, page)
                if await is_visible(popup):
                    result.add(await capture(page, page, f'card popup #{number}', animations='disabled'))
                    await close_popup(context, page, popup)
                    await settle(page, NEXT_CARD_MS)
                else:
                    logger.info(f"  No popup appeared for card #{number}")

            except Exception as e:
                logger.warning(f"  ⚠️ Card #{number} interaction failed: {e}")

    except Exception as e:
        logger.warning(f"  ⚠️ Card popup interaction error: {e}")

    logger.info(f"  Card popup slider done, {len(result.images)} screenshot(s)")
    return result

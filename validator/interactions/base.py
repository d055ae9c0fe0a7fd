"""
Shared pieces for widget interaction strategies
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from validator.errors import InteractionStepFailure

logger = logging.getLogger(__name__)

PASS = 'PASS'
FAIL = 'FAIL'
ERROR = 'ERROR'
UNKNOWN_STATUS = 'UNKNOWN'

# Safe spot for click-outside closes
OUTSIDE_POINT = (20, 20)

POPUP_SELECTORS = [
    '.fe-review-box',
    '.fe-review-box-inner',
    '[class*="review-box"]',
    '[class*="popup"]',
]

CLOSE_BUTTON_SELECTORS = [
    '.fe-review-box-close-icon',
    '.feedspace-review-box-close-icon',
    '[class*="close-icon"]',
    '[class*="close-btn"]',
    'button:has-text("X")',
]


@dataclass(frozen=True)
class TrackMovement:
    index: int
    avg_shift: float
    direction: str

    def to_dict(self) -> Dict[str, Any]:
        return {'index': self.index, 'avgShift': round(self.avg_shift, 2), 'direction': self.direction}


@dataclass(frozen=True)
class MovementVerdict:
    status: str
    message: str
    tracks: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'message': self.message,
            'details': [t.to_dict() for t in self.tracks],
        }


@dataclass
class InteractionResult:
    images: List[bytes] = field(default_factory=list)
    movement: Optional[MovementVerdict] = None

    def add(self, image: Optional[bytes]):
        if image:
            self.images.append(image)


def page_of(context):
    """Frames expose their page as a property; pages are their own page"""
    page = getattr(context, 'page', None)
    if page is not None and not callable(page):
        return page
    return context


def is_closed(page) -> bool:
    try:
        return page.is_closed()
    except Exception:
        return True


async def capture(target, page, label: str, **options) -> Optional[bytes]:
    """Screenshot ``target`` (page or locator); None when the page is gone or the shot fails"""
    if is_closed(page):
        logger.warning(f"  ⚠️ Page closed, skipping capture: {label}")
        return None
    try:
        image = await target.screenshot(**options)
        logger.info(f"  📸 Captured {label}")
        return image
    except Exception as e:
        logger.warning(f"  ⚠️ Capture failed ({label}): {e}")
        return None


async def is_visible(locator) -> bool:
    try:
        return await locator.is_visible()
    except Exception:
        return False


async def settle(page, ms: int):
    if is_closed(page):
        return
    try:
        await page.wait_for_timeout(ms)
    except Exception as e:
        logger.debug(f"  settle interrupted: {e}")


async def step(label: str, operation) -> bool:
    """Await one interaction step; a failure is logged and skipped"""
    try:
        await operation
        return True
    except Exception as e:
        logger.warning(f"  ⚠️ {InteractionStepFailure('interact', f'{label} failed: {e}', e)}")
        return False


async def click_outside(page):
    try:
        await page.mouse.click(*OUTSIDE_POINT)
    except Exception as e:
        logger.warning(f"  ⚠️ Click outside failed: {e}")


async def close_popup(context, page, popup, close_selectors=CLOSE_BUTTON_SELECTORS, prefer_button: bool = True):
    """Close a popup with its close button, or by clicking outside"""
    close_btn = context.locator(', '.join(close_selectors)).filter(visible=True).first
    if not await is_visible(close_btn) and context is not page:
        close_btn = page.locator(', '.join(close_selectors)).filter(visible=True).first

    if prefer_button and await is_visible(close_btn):
        try:
            await close_btn.click(force=True, timeout=3000)
            return
        except Exception as e:
            logger.warning(f"  ⚠️ Close button click failed: {e}")

    await click_outside(page)

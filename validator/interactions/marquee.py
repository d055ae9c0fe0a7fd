"""
Marquee movement tracking (vertical up-down and horizontal left-right)

Samples child positions of each moving track three times, two seconds apart,
and turns the displacement into a PASS/FAIL movement verdict.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from validator.interactions.base import (
    ERROR, FAIL, PASS, UNKNOWN_STATUS,
    InteractionResult, MovementVerdict, TrackMovement, capture, is_closed, page_of, settle,
)

logger = logging.getLogger(__name__)

STATIONARY = 'STATIONARY'
SAMPLE_COUNT = 3
SAMPLE_INTERVAL_MS = 2000
CHILDREN_PER_TRACK = 5
SHIFT_THRESHOLD = 1.0  # px
ADJACENCY_TOLERANCE = 20  # px
FALLBACK_CONTAINER_LIMIT = 50

# Keeps hover-paused marquees moving while we measure
UNPAUSE_CSS = """
* { animation-play-state: running !important; transition-property: none !important; }
*:hover { animation-play-state: running !important; }
"""


@dataclass(frozen=True)
class Axis:
    name: str           # 'vertical' | 'horizontal'
    coord: str          # bounding box key that moves
    positive: str       # direction label for a growing coordinate
    negative: str
    track_label: str
    track_selectors: Tuple[str, ...]
    direction_key: str  # config key whose value 'alter' means cross motion
    feature_name: str


VERTICAL = Axis(
    name='vertical',
    coord='y',
    positive='DOWN',
    negative='UP',
    track_label='column',
    track_selectors=(
        '.feedspace-elements-wrapper',
        '.marquee-column',
        '[class*="vertical_scroll"]',
        '[class*="elements-wrapper"]',
    ),
    direction_key='marquee_direction',
    feature_name='Cross Scroll Animation',
)

HORIZONTAL = Axis(
    name='horizontal',
    coord='x',
    positive='RIGHT',
    negative='LEFT',
    track_label='row',
    track_selectors=(
        '.feedspace-elements-wrapper',
        '.marquee-row',
        '.carousel_slider',
        '[class*="marquee_row"]',
        '[class*="elements-wrapper"]',
        '.marquee-container',
        '.feedspace-marquee-inner',
    ),
    direction_key='horizontal_marquee_direction',
    feature_name='Horizontal Scrolling Animation',
)


def _truthy_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return False


def cross_motion_expected(config: Optional[Dict[str, Any]], axis: Axis) -> bool:
    """True when the config asks neighbouring tracks to move in opposite directions"""
    if not isinstance(config, dict):
        return False
    return config.get(axis.direction_key) == 'alter' or _truthy_flag(config.get('allow_cross_scrolling_animation'))


def classify_shift(avg_shift: float, axis: Axis) -> str:
    if avg_shift > SHIFT_THRESHOLD:
        return axis.positive
    if avg_shift < -SHIFT_THRESHOLD:
        return axis.negative
    return STATIONARY


def track_shifts(initial: List[Dict[int, float]], final: List[Dict[int, float]], axis: Axis) -> List[TrackMovement]:
    """Signed average displacement of the children seen in both samples, per track"""
    tracks = []
    for index, (start, end) in enumerate(zip(initial, final)):
        if not start or not end:
            continue
        shifts = [end[child] - start[child] for child in start if child in end]
        avg_shift = sum(shifts) / len(shifts) if shifts else 0.0
        tracks.append(TrackMovement(index, avg_shift, classify_shift(avg_shift, axis)))
    return tracks


def compute_movement_verdict(initial: Optional[List[Dict[int, float]]],
                             final: Optional[List[Dict[int, float]]],
                             axis: Axis,
                             cross_expected: bool) -> MovementVerdict:
    if not initial or not final:
        return MovementVerdict(UNKNOWN_STATUS, f"No {axis.track_label}s identified for programmatic tracking.")

    tracks = track_shifts(initial, final, axis)
    if not tracks:
        return MovementVerdict(UNKNOWN_STATUS, f"No {axis.track_label} positions could be sampled.")

    for t in tracks:
        logger.info(f"  {axis.track_label.title()} {t.index}: shift={t.avg_shift:.2f} -> {t.direction}")

    label = axis.track_label.title()
    if len(tracks) >= 2:
        first, second = tracks[0].direction, tracks[1].direction
        opposite = {first, second} == {axis.positive, axis.negative}
        if cross_expected:
            if opposite:
                return MovementVerdict(PASS, f"Opposite {axis.track_label} movement verified (cross-scroll).", tuple(tracks))
            kind = 'SAME' if first == second else 'INCORRECT'
            return MovementVerdict(FAIL, f"Failed: {label}s moving in {kind} direction.", tuple(tracks))
        if opposite:
            return MovementVerdict(FAIL, "Movement direction discrepancy: opposite motion without cross-scroll.", tuple(tracks))
        if first == second and first != STATIONARY:
            return MovementVerdict(PASS, f"Parallel {axis.track_label} movement verified.", tuple(tracks))
        return MovementVerdict(PASS, "Movement direction discrepancy detected.", tuple(tracks))

    only = tracks[0]
    if only.direction == STATIONARY:
        return MovementVerdict(FAIL, f"No {axis.name} movement detected.", tuple(tracks))
    return MovementVerdict(PASS, f"Movement detected: {only.direction}", tuple(tracks))


async def warm_up(page):
    """Un-pause animations and nudge the scroll position to force a repaint in headless mode"""
    try:
        await page.mouse.move(0, 0)
    except Exception as e:
        logger.debug(f"  mouse move failed: {e}")
    try:
        await page.add_style_tag(content=UNPAUSE_CSS)
    except Exception as e:
        logger.warning(f"  ⚠️ Could not inject animation style: {e}")
    try:
        await page.evaluate("() => window.scrollBy(0, 1)")
        await settle(page, 100)
        await page.evaluate("() => window.scrollBy(0, -1)")
    except Exception as e:
        logger.debug(f"  scroll nudge failed: {e}")


def _adjacent(box1, box2, axis: Axis) -> bool:
    if not box1 or not box2:
        return False
    if axis.coord == 'x':
        return abs(box1['y'] - box2['y']) < ADJACENCY_TOLERANCE and abs(box1['x'] - box2['x']) > ADJACENCY_TOLERANCE
    return abs(box1['x'] - box2['x']) < ADJACENCY_TOLERANCE and abs(box1['y'] - box2['y']) > ADJACENCY_TOLERANCE


async def find_tracks(widget, axis: Axis) -> List:
    tracks = widget.locator(', '.join(axis.track_selectors)).filter(visible=True)
    count = await tracks.count()
    if count:
        return [tracks.nth(i) for i in range(count)]

    logger.info(f"  Primary {axis.track_label} selectors failed, searching for adjacent children...")
    containers = widget.locator('div, section, ul')
    total = await containers.count()
    for i in range(min(total, FALLBACK_CONTAINER_LIMIT)):
        candidate = containers.nth(i)
        try:
            children = candidate.locator(':scope > *')
            if await children.count() < 2:
                continue
            box1 = await children.nth(0).bounding_box()
            box2 = await children.nth(1).bounding_box()
        except Exception:
            continue
        if _adjacent(box1, box2, axis):
            logger.info(f"  Fallback: {axis.track_label} found at container {i}")
            return [candidate]
    return []


async def sample_positions(tracks: List, axis: Axis) -> List[Dict[int, float]]:
    positions = []
    for track in tracks:
        children = track.locator(':scope > *')
        sample = {}
        try:
            count = await children.count()
            for j in range(min(CHILDREN_PER_TRACK, count)):
                box = await children.nth(j).bounding_box()
                if box:
                    sample[j] = box[axis.coord]
        except Exception as e:
            logger.debug(f"  position sample failed: {e}")
        positions.append(sample)
    return positions


async def track_movement(context, widget, config, axis: Axis, page=None) -> InteractionResult:
    page = page or page_of(context)
    result = InteractionResult()

    if is_closed(page):
        result.movement = MovementVerdict(ERROR, 'Page closed before movement tracking.')
        return result

    try:
        await warm_up(page)
        tracks = await find_tracks(widget, axis)
        logger.info(f"  Tracking {len(tracks)} {axis.track_label}(s) over {SAMPLE_COUNT} samples")

        samples = []
        for n in range(SAMPLE_COUNT):
            if n:
                await settle(page, SAMPLE_INTERVAL_MS)
            positions = await sample_positions(tracks, axis) if tracks else None
            if positions:
                for i, p in enumerate(positions):
                    coords = ', '.join(str(round(v)) for v in p.values())
                    logger.info(f"  Sample {n + 1} ({axis.track_label} {i}): [{coords}]")
            samples.append(positions)
            result.add(await capture(widget, page, f'{axis.name} marquee sample {n + 1}', animations='allow'))

        result.movement = compute_movement_verdict(samples[0], samples[-1], axis, cross_motion_expected(config, axis))

    except Exception as e:
        logger.warning(f"  ⚠️ Movement tracking error: {e}")
        result.movement = MovementVerdict(ERROR, str(e))

    logger.info(f"  Movement verdict: {result.movement.status} - {result.movement.message}")
    return result


async def interact_vertical(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("↕️ Vertical marquee: starting movement verification")
    return await track_movement(context, widget, config, VERTICAL, page=page)


async def interact_horizontal(context, widget, config=None, page=None) -> InteractionResult:
    logger.info("↔️ Horizontal marquee: starting movement verification")
    return await track_movement(context, widget, config, HORIZONTAL, page=page)

"""
Prompt text for the vision model
Maps configured feature flags to the status the screenshots should show
"""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

FEATURE_CONFIG_KEYS = {
    "Left & Right Buttons": "is_show_arrows_buttons",
    "Slider Indicators": "is_show_indicators",
    "Show Review Date": "allow_to_display_feed_date",
    "Show Review Ratings": "is_show_ratings",
    "Shorten Long Reviews / Read More": "show_full_review",
    "Show Social Platform Icon": "show_platform_icon",
    "Inline CTA": "cta_enabled",
    "Feedspace Branding": "allow_to_remove_branding",
    "Review Card Border & Shadow": ["is_show_border", "is_show_shadow"],
    "Show Star Ratings": "show_star_ratings",
    "Widget position": "widget_position",
    "Show Load More Button": "enable_load_more",
}

# "1" hides these
INVERTED_FEATURES = {"Shorten Long Reviews / Read More"}

NOT_APPLICABLE_FEATURES = {"Feedspace Branding"}

WIDGET_HINTS = {
    "AVATAR_GROUP": "Screenshots include the avatar row and the review popups opened by clicking avatars. "
                    "Aggregate stars sit beside the avatars; per-review stars sit inside the popup.",
    "CAROUSEL_SLIDER": "Scan every card. Arrows sit on the left/right edges, indicators at the bottom.",
    "SINGLE_SLIDER": "Each screenshot shows a different review opened from the slider.",
    "FLOATING_TOAST": "First image is the small preview card, later images the expanded modal.",
    "MARQUEE_STRIPE": "Cards scroll in a strip; social icons can be ~10px badges right after the reviewer name. "
                      "Popups opened from the strip count too.",
    "MARQUEE_LEFTRIGHT": "Cards scroll horizontally; movement is verified separately, judge static UI only.",
    "MARQUEE_UPDOWN": "Cards scroll vertically; movement is verified separately. Left & Right Buttons are Absent.",
    "MASONRY": "Brick layout; a Load More button sits centered under the grid.",
}


def _is_enabled(value: Any) -> bool:
    return value == "1" or value == 1 or value is True


def expected_status(feature: str, config: Optional[Dict[str, Any]]) -> str:
    """Visible / Absent / N/A for one feature under ``config``"""
    if feature in NOT_APPLICABLE_FEATURES:
        return "N/A"

    config = config or {}
    config_key = FEATURE_CONFIG_KEYS.get(feature)
    if not config_key:
        return "Absent"

    keys = config_key if isinstance(config_key, list) else [config_key]
    if not any(key in config for key in keys):
        return "Absent"

    enabled = any(_is_enabled(config.get(key)) for key in keys)
    if feature in INVERTED_FEATURES:
        enabled = not enabled
    return "Visible" if enabled else "Absent"


def features_to_test(config: Optional[Dict[str, Any]], static_features: Optional[List[str]]) -> List[str]:
    if static_features:
        return list(static_features)
    if config and isinstance(config.get('features'), list):
        return list(config['features'])
    return list(FEATURE_CONFIG_KEYS)


def feature_name(feature: Any) -> str:
    if isinstance(feature, dict):
        return feature.get('name', 'Unknown')
    return str(feature)


def build(widget_type: str, config: Optional[Dict[str, Any]], static_features: Optional[List[str]] = None,
          multi_image: bool = False) -> str:
    features = [feature_name(f) for f in features_to_test(config, static_features)]
    instructions = "\n".join(
        f"- **{name}**: (Config Status: {expected_status(name, config)})" for name in features
    )
    logger.debug(f"Prompt instructions:\n{instructions}")

    scans = "multiple screenshots" if multi_image else "a screenshot"
    return f"""You are a QA automation assistant doing visual validation of a **{widget_type}** review widget.
You are given {scans} of the widget.

RULES:
1. Visual evidence only. If a feature is not visible in any image it is "Absent".
2. If a feature is visible in ANY image, it is "Visible".
3. Focus on the {widget_type} widget only and ignore the surrounding page.
4. {WIDGET_HINTS.get(widget_type, 'Scan every review card.')}

CONFIGURATION:
{instructions}

STATUS MATRIX:
- Visible + Visible => PASS
- Visible + Absent  => FAIL
- Absent  + Visible => FAIL
- Absent  + Absent  => PASS
- Config N/A always PASS

Return RAW JSON only:
{{
  "feature_results": [
    {{"feature": "...", "ui_status": "Visible/Absent", "config_status": "Visible/Absent/N/A",
      "scenario": "...", "status": "PASS/FAIL"}}
  ],
  "overall_status": "PASS/FAIL"
}}
"""

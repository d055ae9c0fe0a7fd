"""
Widget Taxonomy - closed set of widget variants, alias vocabulary and
structural signatures used by the detector and the validation agent.
"""
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


UNKNOWN = 'Unknown'
WIDGET_NOT_FOUND = 'Widget Not Found'

CAROUSEL_SLIDER = 'CAROUSEL_SLIDER'
MASONRY = 'MASONRY'
MARQUEE_STRIPE = 'MARQUEE_STRIPE'  # backend term, frontend calls it STRIP_SLIDER
AVATAR_GROUP = 'AVATAR_GROUP'
SINGLE_SLIDER = 'SINGLE_SLIDER'
MARQUEE_UPDOWN = 'MARQUEE_UPDOWN'
MARQUEE_LEFTRIGHT = 'MARQUEE_LEFTRIGHT'
FLOATING_TOAST = 'FLOATING_TOAST'

WIDGET_TYPE_CODES = {
    4: CAROUSEL_SLIDER,
    5: MASONRY,
    6: MARQUEE_STRIPE,
    7: AVATAR_GROUP,
    8: SINGLE_SLIDER,
    9: MARQUEE_UPDOWN,
    10: MARQUEE_LEFTRIGHT,
    11: FLOATING_TOAST,
}

# Frontend vocabulary -> backend canonical names (keys already normalized)
WIDGET_ALIASES = {
    'stripslider': MARQUEE_STRIPE,
    'marqueeslider': MARQUEE_STRIPE,
    'marqueestripe': MARQUEE_STRIPE,
    'carouselslider': CAROUSEL_SLIDER,
    'carousel': CAROUSEL_SLIDER,
    'singleslider': SINGLE_SLIDER,
    'marqueeupdown': MARQUEE_UPDOWN,
    'marqueeuptown': MARQUEE_UPDOWN,
    'marqueeleftright': MARQUEE_LEFTRIGHT,
    'floatingtoast': FLOATING_TOAST,
    'avatargroup': AVATAR_GROUP,
    'masonry': MASONRY,
}

# Ordered: first signature with a matching token wins
CSS_SIGNATURES = (
    (('feedspace-vertical-scroll', 'feedspace-updown', 'vertical-marquee'), MARQUEE_UPDOWN),
    (('fe-feedspace-avatar-group-widget-wrap', 'feedspace-avatar-group'), AVATAR_GROUP),
    (('feedspace-carousel-widget', 'testimonial-slider', 'carousel_slider'), CAROUSEL_SLIDER),
    (('feedspace-marque-main-wrap', 'strip-slider'), MARQUEE_STRIPE),
    (('feedspace-floating-widget', 'fe-floating-toast', 'fe-toast-card', 'fe-chat-bubble'), FLOATING_TOAST),
    (('feedspace-element-horizontal-scroll-widget', 'feedspace-left-right-shadow'), MARQUEE_LEFTRIGHT),
    (('feedspace-single-review-widget', 'single-slider', 'feedspace-single-slider'), SINGLE_SLIDER),
    (('fe-masonry', 'feedspace-masonry', 'masonry-widget'), MASONRY),
)

IDENTIFYING_ATTRIBUTES = (
    'data-widget-type',
    'widget_type_id',
    'data-type',
    'data-feedspace-type',
    'data-id',
)

# "Is this a widget at all" markers
ANCHOR_INNER_SELECTORS = (
    '.feedspace-element-feed-box-wrap',
    '.fe-review-card',
    '.feedspace-element-inner',
    '.feedspace-element-grid',
)
ANCHOR_CLASSES = ('feedspace-embed', 'feedspace-widget')

# Keyword hints checked against the lowercased html snippet, in order
ANCHOR_KEYWORD_HINTS = (
    (('vertical-scroll', 'updown'), MARQUEE_UPDOWN),
    (('horizontal-scroll', 'left-right'), MARQUEE_LEFTRIGHT),
    (('carousel',), CAROUSEL_SLIDER),
    (('strip-slider',), MARQUEE_STRIPE),
)

# Candidate selectors, most specific first
WIDGET_SELECTORS = (
    # Floating / toast overlap other content, check first
    '.feedspace-floating-card',
    '.feedspace-toast',
    '.feedspace-floating-widget',
    '.fe-floating-preview',
    '.fe-toast-card',
    '.fe-chat-bubble',
    '.fe-floating-toast',
    '[class*="floating-toast"]',
    '[class*="chat-box"]',
    '.fe-feedspace-avatar-group-widget-wrap',
    '.feedspace-carousel-widget',
    '.testimonial-slider',
    '.carousel_slider',
    '.feedspace-marque-main-wrap',
    '.feedspace-show-overlay',
    '[class*="feedspace-embed"]',
    '.strip-slider',
    '.feedspace-element-horizontal-scroll-widget',
    '.feedspace-left-right-shadow',
    '.feedspace-vertical-scroll',
    '.feedspace-updown',
    '.feedspace-single-review-widget',
    '.feedspace-single-slider',
    '.fe-masonry',
    '.feedspace-masonry',
    '#feedspace-widget-container',
    '.feedspace-widget',
    '.feedspace-elements-wrapper',
    'iframe[src*="feedspace.io"]',
    'div[id*="feedspace"]',
    # Data attributes are the most generic
    '[data-widget-type]',
    '[data-type]',
    '[widget_type_id]',
    '[data-feedspace-type]',
)

_ALIAS_STRIP = re.compile(r'[_\- ]')
_UPPER_SEPARATORS = re.compile(r'[- ]')


def normalize_alias(raw: str) -> str:
    """'Strip-Slider' -> 'stripslider'"""
    return _ALIAS_STRIP.sub('', raw.lower())


def normalize_upper(raw: str) -> str:
    """'marquee-up down' -> 'MARQUEE_UP_DOWN'"""
    return _UPPER_SEPARATORS.sub('_', raw.upper())


def parse_type_code(raw: Any) -> Optional[int]:
    """Explicit numeric parse: ints and digit strings only, never bool/float coercion."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        match = re.match(r'\s*([+-]?\d+)', raw)
        if match:
            return int(match.group(1))
    return None


@dataclass(frozen=True)
class WidgetTaxonomy:
    """
    Read-only tables shared by the detector and the validation agent.

    Built once (see ``default()``) and passed by reference; the mappings are
    wrapped in ``MappingProxyType`` so nothing downstream can mutate them.
    """
    codes: Mapping[int, str]
    aliases: Mapping[str, str]
    signatures: Tuple[Tuple[Tuple[str, ...], str], ...]
    identifying_attributes: Tuple[str, ...] = IDENTIFYING_ATTRIBUTES
    anchor_inner_selectors: Tuple[str, ...] = ANCHOR_INNER_SELECTORS
    anchor_classes: Tuple[str, ...] = ANCHOR_CLASSES
    anchor_keyword_hints: Tuple[Tuple[Tuple[str, ...], str], ...] = ANCHOR_KEYWORD_HINTS
    anchor_fallback: str = MARQUEE_UPDOWN
    selectors: Tuple[str, ...] = WIDGET_SELECTORS
    names: Mapping[str, int] = field(init=False)

    def __post_init__(self):
        names: Dict[str, int] = {}
        for code, name in self.codes.items():
            if name in names:
                raise ValueError(f"Widget type {name} mapped to codes {names[name]} and {code}")
            names[name] = code

        for alias, name in self.aliases.items():
            if name not in names:
                raise ValueError(f"Alias '{alias}' points at unknown widget type {name}")
            if alias != normalize_alias(alias):
                raise ValueError(f"Alias '{alias}' is not normalized")

        for tokens, name in tuple(self.signatures) + tuple(self.anchor_keyword_hints):
            if name not in names:
                raise ValueError(f"Signature {tokens} points at unknown widget type {name}")

        if self.anchor_fallback not in names:
            raise ValueError(f"Anchor fallback {self.anchor_fallback} is not a widget type")

        object.__setattr__(self, 'codes', MappingProxyType(dict(self.codes)))
        object.__setattr__(self, 'aliases', MappingProxyType(dict(self.aliases)))
        object.__setattr__(self, 'names', MappingProxyType(names))

    @classmethod
    def default(cls, anchor_fallback: str = MARQUEE_UPDOWN) -> 'WidgetTaxonomy':
        return cls(
            codes=WIDGET_TYPE_CODES,
            aliases=WIDGET_ALIASES,
            signatures=CSS_SIGNATURES,
            anchor_fallback=anchor_fallback,
        )

    @property
    def variants(self) -> Tuple[str, ...]:
        return tuple(self.codes.values())

    @property
    def selector_string(self) -> str:
        return ', '.join(self.selectors)

    def resolve(self, raw: Any) -> str:
        """Numeric code -> alias -> canonical name, else Unknown. Never raises."""
        if raw is None:
            return UNKNOWN

        code = parse_type_code(raw)
        if code is not None and code in self.codes:
            return self.codes[code]

        if isinstance(raw, str):
            alias = self.aliases.get(normalize_alias(raw))
            if alias:
                return alias
            upper = normalize_upper(raw)
            if upper in self.names:
                return upper

        return UNKNOWN

    def canonical(self, name: Optional[str]) -> Optional[str]:
        """Normalization used for equivalence; unknown names normalize to themselves (uppercased)."""
        if not name:
            return None
        return self.aliases.get(normalize_alias(name)) or normalize_upper(name)

    def type_id(self, name: Optional[str]) -> Optional[int]:
        canonical = self.canonical(name)
        if canonical is None:
            return None
        return self.names.get(canonical)

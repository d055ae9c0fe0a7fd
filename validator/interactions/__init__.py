"""
Interaction strategies, one per widget variant family.

MASONRY has no strategy: the agent falls back to a single element capture.
"""
from validator.interactions import avatar_group, card_popup, carousel, floating_toast, marquee
from widgets.taxonomy import (
    AVATAR_GROUP, CAROUSEL_SLIDER, FLOATING_TOAST, MARQUEE_LEFTRIGHT, MARQUEE_STRIPE,
    MARQUEE_UPDOWN, SINGLE_SLIDER,
)

STRATEGIES = {
    AVATAR_GROUP: avatar_group.interact,
    FLOATING_TOAST: floating_toast.interact,
    CAROUSEL_SLIDER: carousel.interact,
    # Same popup-card widget under the backend and frontend vocabularies
    MARQUEE_STRIPE: card_popup.interact,
    SINGLE_SLIDER: card_popup.interact,
    MARQUEE_UPDOWN: marquee.interact_vertical,
    MARQUEE_LEFTRIGHT: marquee.interact_horizontal,
}

MOVEMENT_FEATURES = {
    MARQUEE_UPDOWN: marquee.VERTICAL.feature_name,
    MARQUEE_LEFTRIGHT: marquee.HORIZONTAL.feature_name,
}


def strategy_for(variant):
    return STRATEGIES.get(variant)

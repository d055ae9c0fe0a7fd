"""
Interaction strategies against the in-memory page
"""
import asyncio

from fakes import FakeElement, FakeLocator, FakePage
from validator.interactions import STRATEGIES, avatar_group, card_popup, carousel, floating_toast, marquee, strategy_for
from validator.interactions.base import CLOSE_BUTTON_SELECTORS, POPUP_SELECTORS
from widgets.taxonomy import (
    AVATAR_GROUP, CAROUSEL_SLIDER, FLOATING_TOAST, MARQUEE_LEFTRIGHT, MARQUEE_STRIPE, MARQUEE_UPDOWN,
    MASONRY, SINGLE_SLIDER,
)


def toggles(page, opener_elements, target, closer=None):
    """Clicking an opener shows ``target``; clicking ``closer`` hides it"""
    def handler(element):
        if closer is not None and element is closer:
            target.visible = False
        elif any(element is o for o in opener_elements):
            target.visible = True
    page.click_handlers.append(handler)


def test_strategy_registry():
    assert STRATEGIES[AVATAR_GROUP] is avatar_group.interact
    assert STRATEGIES[FLOATING_TOAST] is floating_toast.interact
    assert STRATEGIES[CAROUSEL_SLIDER] is carousel.interact
    assert STRATEGIES[MARQUEE_STRIPE] is STRATEGIES[SINGLE_SLIDER] is card_popup.interact
    assert STRATEGIES[MARQUEE_UPDOWN] is marquee.interact_vertical
    assert STRATEGIES[MARQUEE_LEFTRIGHT] is marquee.interact_horizontal
    assert strategy_for(MASONRY) is None
    assert strategy_for('Unknown') is None


class TestCarousel:
    def test_timed_captures(self):
        page = FakePage(elements={carousel.CONTENT_SELECTOR: [FakeElement()]})
        widget = FakeLocator([FakeElement()], page)

        result = asyncio.run(carousel.interact(page, widget, {}, page=page))

        assert len(result.images) == 3
        kinds = [kind for kind, _ in page.shots]
        assert kinds == ['page', 'element', 'element']
        assert page.shots[0][1]['full_page'] is True
        assert carousel.SHOT_GAP_MS in page.waits

    def test_missing_content_still_captures(self):
        page = FakePage()
        widget = FakeLocator([FakeElement()], page)
        result = asyncio.run(carousel.interact(page, widget, {}, page=page))
        assert len(result.images) == 3


class TestCardPopup:
    def test_pick_cards_prefers_unique_ids(self):
        page = FakePage()
        ids = ['a', 'a', 'b', None, 'c', 'd']
        cards = [FakeLocator([FakeElement(attrs={'data-feed-id': i} if i else {})], page) for i in ids]
        picked = asyncio.run(card_popup.pick_cards(cards))
        assert [asyncio.run(c.get_attribute('data-feed-id')) for c in picked] == ['a', 'b', 'c']

    def test_pick_cards_spreads_when_ids_missing(self):
        page = FakePage()
        cards = [FakeLocator([FakeElement()], page) for _ in range(8)]
        picked = asyncio.run(card_popup.pick_cards(cards))
        assert [cards.index(c) for c in picked] == [0, 2, 4]

    def test_clicks_cards_and_captures_popups(self):
        card_elements = [FakeElement(attrs={'data-feed-id': str(i)}) for i in range(5)]
        popup = FakeElement(visible=False)
        close = FakeElement()
        page = FakePage(elements={
            ', '.join(card_popup.CARD_SELECTORS): card_elements,
            ', '.join(POPUP_SELECTORS): [popup],
            ', '.join(CLOSE_BUTTON_SELECTORS): [close],
        })
        toggles(page, card_elements, popup, closer=close)

        result = asyncio.run(card_popup.interact(page, FakeLocator([FakeElement()], page), {}, page=page))

        assert len(result.images) == 1 + card_popup.MAX_CARDS
        for element in card_elements[:3]:
            assert element.actions[:3] == ['hover', 'click', 'dispatch:click']
        assert card_elements[3].actions == []
        assert close.actions.count('click') == 3
        assert popup.visible is False

    def test_no_popup(self):
        card_elements = [FakeElement(attrs={'data-feed-id': 'x'})]
        page = FakePage(elements={', '.join(card_popup.CARD_SELECTORS): card_elements})
        result = asyncio.run(card_popup.interact(page, FakeLocator([FakeElement()], page), {}, page=page))
        assert len(result.images) == 1


class TestAvatarGroup:
    def build(self):
        avatars = [FakeElement(attrs={'data-feed-id': i}) for i in ('1', '1', '2', '3')]
        review_box = FakeElement(visible=False)
        close = FakeElement()
        page = FakePage(elements={
            ', '.join(avatar_group.REVIEW_BOX_SELECTORS): [review_box],
            ', '.join(avatar_group.REVIEW_BOX_SELECTORS[:3]): [review_box],
            ', '.join(avatar_group.CLOSE_SELECTORS): [close],
        })
        widget = FakeLocator([FakeElement(children={', '.join(avatar_group.AVATAR_SELECTORS): avatars})], page)
        toggles(page, avatars, review_box, closer=close)
        return page, widget, avatars, review_box

    def test_unique_visible_avatars(self):
        page, widget, avatars, _ = self.build()
        avatars[2].visible = False
        unique = asyncio.run(avatar_group.unique_visible_avatars(widget))
        assert [u.elements[0] for u in unique] == [avatars[0], avatars[3]]

    def test_clicks_first_and_third_avatar(self):
        page, widget, avatars, review_box = self.build()

        result = asyncio.run(avatar_group.interact(page, widget, {}, page=page))

        # avatars-only shot + one popup per targeted avatar
        assert len(result.images) == 3
        assert 'click' in avatars[0].actions
        assert 'click' not in avatars[2].actions
        assert 'click' in avatars[3].actions
        assert review_box.visible is False


class TestFloatingToast:
    def test_preview_then_modal(self):
        preview = FakeElement()
        modal = FakeElement(visible=False)
        page = FakePage(elements={', '.join(floating_toast.EXPANDED_SELECTORS): [modal]})
        widget = FakeLocator([FakeElement(children={', '.join(floating_toast.PREVIEW_SELECTORS): [preview]})], page)
        toggles(page, [preview], modal)

        result = asyncio.run(floating_toast.interact(page, widget, {}, page=page))

        assert len(result.images) == 2
        assert preview.actions == ['hover', 'click', 'dispatch:click']
        assert page.shots[0][0] == 'page'
        assert page.shots[1][0] == 'element'
        assert page.mouse.clicks, 'modal is closed by clicking outside when no close button exists'

    def test_preview_found_at_page_scope(self):
        preview = FakeElement()
        page = FakePage(elements={', '.join(floating_toast.PREVIEW_SELECTORS): [preview]})
        widget = FakeLocator([FakeElement()], page)
        found = asyncio.run(floating_toast.find_preview(widget, page))
        assert found.elements == [preview]

    def test_no_preview_falls_back_to_full_page(self):
        page = FakePage()
        result = asyncio.run(floating_toast.interact(page, FakeLocator([FakeElement()], page), {}, page=page))
        assert len(result.images) == 1
        assert page.full_page_shots()

"""
Widget taxonomy tables and name resolution
"""
import pytest

from widgets.taxonomy import (
    AVATAR_GROUP, CAROUSEL_SLIDER, MARQUEE_LEFTRIGHT, MARQUEE_STRIPE, MARQUEE_UPDOWN, MASONRY,
    UNKNOWN, WIDGET_ALIASES, WIDGET_TYPE_CODES, WidgetTaxonomy, normalize_alias, parse_type_code,
)


@pytest.fixture
def taxonomy():
    return WidgetTaxonomy.default()


class TestTables:
    def test_codes_and_names_are_a_bijection(self, taxonomy):
        assert len(taxonomy.names) == len(taxonomy.codes) == 8
        for code, name in taxonomy.codes.items():
            assert taxonomy.names[name] == code

    def test_every_alias_points_at_a_canonical_name(self, taxonomy):
        for alias, name in taxonomy.aliases.items():
            assert name in taxonomy.names
            assert alias == normalize_alias(alias)

    def test_tables_are_read_only(self, taxonomy):
        with pytest.raises(TypeError):
            taxonomy.codes[12] = 'NEW_WIDGET'
        with pytest.raises(TypeError):
            taxonomy.aliases['new'] = MASONRY

    def test_taxonomy_is_frozen(self, taxonomy):
        with pytest.raises(Exception):
            taxonomy.anchor_fallback = MASONRY

    def test_alias_to_unknown_name_is_rejected(self):
        with pytest.raises(ValueError):
            WidgetTaxonomy(codes=WIDGET_TYPE_CODES, aliases={'ghost': 'GHOST_WIDGET'}, signatures=())

    def test_duplicate_name_is_rejected(self):
        with pytest.raises(ValueError):
            WidgetTaxonomy(codes={1: MASONRY, 2: MASONRY}, aliases={}, signatures=())

    def test_unnormalized_alias_is_rejected(self):
        with pytest.raises(ValueError):
            WidgetTaxonomy(codes=WIDGET_TYPE_CODES, aliases={'strip_slider': MARQUEE_STRIPE}, signatures=())

    def test_anchor_fallback_is_configurable(self):
        taxonomy = WidgetTaxonomy.default(anchor_fallback=MARQUEE_LEFTRIGHT)
        assert taxonomy.anchor_fallback == MARQUEE_LEFTRIGHT

    def test_anchor_fallback_must_be_a_variant(self):
        with pytest.raises(ValueError):
            WidgetTaxonomy.default(anchor_fallback='SOMETHING_ELSE')

    def test_selector_string_joins_all_selectors(self, taxonomy):
        assert taxonomy.selector_string.count(', ') == len(taxonomy.selectors) - 1


class TestResolve:
    @pytest.mark.parametrize('code', sorted(WIDGET_TYPE_CODES))
    def test_every_code_resolves_as_int_and_string(self, taxonomy, code):
        assert taxonomy.resolve(code) == WIDGET_TYPE_CODES[code]
        assert taxonomy.resolve(str(code)) == WIDGET_TYPE_CODES[code]

    @pytest.mark.parametrize('raw', ['Strip-Slider', 'strip_slider', 'STRIP SLIDER', 'stripSlider'])
    def test_alias_spellings(self, taxonomy, raw):
        assert taxonomy.resolve(raw) == MARQUEE_STRIPE

    def test_uppercase_path(self, taxonomy):
        assert taxonomy.resolve('avatar-group') == AVATAR_GROUP
        assert taxonomy.resolve('marquee updown') == MARQUEE_UPDOWN

    def test_leading_digits_are_parsed(self, taxonomy):
        assert taxonomy.resolve('4 (carousel)') == CAROUSEL_SLIDER

    @pytest.mark.parametrize('raw', [None, '', 'nonsense', 12, '99', True, 4.0, [], {}])
    def test_unrecognized_inputs_are_unknown(self, taxonomy, raw):
        assert taxonomy.resolve(raw) == UNKNOWN

    def test_type_id_round_trips_canonical_names(self, taxonomy):
        for code, name in taxonomy.codes.items():
            assert taxonomy.type_id(name) == code
        assert taxonomy.type_id('strip-slider') == 6
        assert taxonomy.type_id(UNKNOWN) is None
        assert taxonomy.type_id(None) is None


def test_parse_type_code_never_coerces_bools():
    assert parse_type_code(True) is None
    assert parse_type_code(False) is None
    assert parse_type_code(' 9') == 9
    assert parse_type_code('x9') is None


def test_aliases_only_name_known_variants():
    assert set(WIDGET_ALIASES.values()) <= set(WIDGET_TYPE_CODES.values())

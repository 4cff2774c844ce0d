"""Tests for variant initialization, matching and option availability."""

import pytest

from storefront.errors import EmptyCatalog, UnknownOptionValue
from storefront.models.variant import ExactMatch, PartialMatch, Variant
from storefront.services.catalog import variant_resolver
from storefront.services.catalog.variant_resolver import VariantResolver


def test_initialize_prefers_given_variant(variants):
    preferred = variants[2]
    assert variant_resolver.initialize(variants, preferred).id == "3"


def test_initialize_ignores_preferred_variant_outside_catalog(variants):
    stranger = Variant(id="99", sku="X", properties={"color": "green"})
    assert variant_resolver.initialize(variants, stranger).id == "1"


def test_initialize_falls_back_to_default_then_first(variants):
    variants[1] = variants[1].model_copy(update={"is_default": True})
    assert variant_resolver.initialize(variants).id == "2"

    plain = [v.model_copy(update={"is_default": False}) for v in variants]
    assert variant_resolver.initialize(plain).id == "1"


def test_initialize_empty_catalog():
    with pytest.raises(EmptyCatalog):
        variant_resolver.initialize([])


def test_select_red_then_large_resolves_out_of_stock_variant(variants, schema):
    resolver = VariantResolver(variants, schema)

    first = resolver.select_value({}, "color", "red")
    assert first.selection == {"color": "red"}
    assert isinstance(first.match, ExactMatch)
    assert first.variant.id == "1"

    second = resolver.select_value(first.selection, "size", "L")
    assert second.selection == {"color": "red", "size": "L"}
    assert isinstance(second.match, ExactMatch)
    assert second.variant.id == "2"
    assert second.variant.in_stock is False
    assert resolver.is_value_in_stock({"color": "red"}, "size", "L") is False
    assert resolver.is_value_in_stock({"color": "red"}, "size", "M") is True


def test_select_value_does_not_mutate_input(variants):
    resolver = VariantResolver(variants)
    current = {"color": "red"}

    resolver.select_value(current, "size", "M")

    assert current == {"color": "red"}


def test_select_value_is_idempotent(variants):
    resolver = VariantResolver(variants)
    once = resolver.select_value({"color": "blue"}, "size", "M")
    twice = resolver.select_value(once.selection, "size", "M")

    assert once.selection == twice.selection
    assert once.variant.id == twice.variant.id == "3"


def test_exact_match_agrees_with_every_selected_value(variants):
    for selection in (
        {"color": "red"},
        {"size": "M"},
        {"color": "blue", "size": "M"},
        {"color": "red", "size": ""},
    ):
        match = variant_resolver.find_match(variants, selection)
        assert isinstance(match, ExactMatch)
        for name, value in selection.items():
            if value:
                assert match.variant.properties[name] == value


def test_partial_match_reports_missing_properties(variants):
    resolver = VariantResolver(variants)

    result = resolver.select_value({"color": "blue"}, "size", "L")

    assert isinstance(result.match, PartialMatch)
    # blue/M and red/L both satisfy one key; the earlier variant wins
    assert result.variant.id == "2"
    assert result.match.missing_properties == ["color"]
    assert result.is_exact is False
    assert result.confirms_selection is True


def test_partial_match_that_drops_clicked_value_does_not_confirm():
    variants = [
        Variant(id="a", sku="A", properties={"color": "red", "size": "S", "fit": "slim"}),
        Variant(id="b", sku="B", properties={"color": "red", "size": "M", "fit": "loose"}),
    ]
    resolver = VariantResolver(variants)

    result = resolver.select_value({"color": "red", "size": "S"}, "fit", "loose")

    assert isinstance(result.match, PartialMatch)
    assert result.variant.id == "a"
    assert result.confirms_selection is False


def test_no_match_when_nothing_overlaps(variants):
    resolver = VariantResolver(variants)

    result = resolver.select_value({}, "color", "green")

    assert result.match is None
    assert result.variant is None
    assert result.confirms_selection is False


def test_select_value_on_empty_catalog():
    with pytest.raises(EmptyCatalog):
        VariantResolver([]).select_value({}, "color", "red")


def test_select_value_rejects_values_outside_schema(variants, schema):
    resolver = VariantResolver(variants, schema)

    with pytest.raises(UnknownOptionValue):
        resolver.select_value({}, "color", "green")
    with pytest.raises(UnknownOptionValue):
        resolver.select_value({}, "material", "cotton")


def test_selectable_values_ignore_the_property_itself(variants):
    assert variant_resolver.get_selectable_values(
        variants, {"color": "red", "size": "M"}, "size"
    ) == {"M", "L"}
    assert variant_resolver.get_selectable_values(
        variants, {"color": "blue"}, "size"
    ) == {"M"}
    assert variant_resolver.get_selectable_values(
        variants, {"size": "L"}, "color"
    ) == {"red"}
    assert variant_resolver.get_selectable_values(
        variants, {"color": ""}, "size"
    ) == {"M", "L"}


def test_inactive_variant_is_not_in_stock(variants):
    variants[2] = variants[2].model_copy(update={"is_active": False})

    assert variant_resolver.is_value_in_stock(variants, {}, "color", "blue") is False
    assert variant_resolver.is_value_in_stock(variants, {}, "color", "red") is True


def test_option_states_describe_every_schema_property(variants, schema):
    resolver = VariantResolver(variants, schema)

    options = resolver.option_states({"color": "blue"})

    assert [o.property_name for o in options] == ["color", "size"]
    color, size = options
    assert color.property_type == "color"
    assert color.selected_value == "blue"
    assert [(v.value, v.available, v.selected) for v in color.values] == [
        ("red", True, False),
        ("blue", True, True),
    ]
    assert size.selected_value is None
    assert [(v.value, v.available, v.in_stock) for v in size.values] == [
        ("M", True, True),
        ("L", False, False),
    ]


def test_variant_pricing_helpers():
    variant = Variant(id=7, sku="S", price="40.00", salePrice="30.00", inventory=2)

    assert variant.id == "7"
    assert variant.on_sale is True
    assert str(variant.current_price) == "30.00"
    assert variant.discount_percentage == 25

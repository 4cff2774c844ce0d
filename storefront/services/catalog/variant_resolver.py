"""Resolve a shopper's option selection to a concrete product variant."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from storefront.errors import EmptyCatalog, UnknownOptionValue
from storefront.models.variant import (
    ExactMatch,
    OptionValueState,
    PartialMatch,
    PropertyOptions,
    SelectionResult,
    SelectionState,
    Variant,
    VariantMatch,
    VariantPropertySchema,
)

logger = logging.getLogger(__name__)


def _active_selection(selection: SelectionState) -> dict[str, str]:
    """Drop wildcard entries ("" or None) from a selection."""
    return {name: value for name, value in selection.items() if value}


def _is_compatible(
    variant: Variant,
    selection: SelectionState,
    ignore: str | None = None,
) -> bool:
    return all(
        variant.properties.get(name) == value
        for name, value in _active_selection(selection).items()
        if name != ignore
    )


def initialize(
    variants: Sequence[Variant],
    preferred_variant: Variant | None = None,
) -> Variant:
    """Pick the variant a product detail view starts on."""

    if not variants:
        raise EmptyCatalog()

    if preferred_variant is not None:
        for variant in variants:
            if variant.id == preferred_variant.id:
                return variant

    for variant in variants:
        if variant.is_default:
            return variant

    return variants[0]


def find_match(
    variants: Sequence[Variant],
    selection: SelectionState,
) -> VariantMatch | None:
    """Exact match first, then the variant satisfying the most selected properties."""

    if not variants:
        raise EmptyCatalog()

    wanted = _active_selection(selection)

    for variant in variants:
        if _is_compatible(variant, wanted):
            return ExactMatch(variant=variant)

    best: Variant | None = None
    best_score = 0
    for variant in variants:
        score = sum(
            1 for name, value in wanted.items() if variant.properties.get(name) == value
        )
        # strict comparison keeps the earliest variant on ties
        if score > best_score:
            best, best_score = variant, score

    if best is None:
        return None

    missing = [
        name for name, value in wanted.items() if best.properties.get(name) != value
    ]
    return PartialMatch(variant=best, missing_properties=missing)


def get_selectable_values(
    variants: Iterable[Variant],
    selection: SelectionState,
    property_name: str,
) -> set[str]:
    """Values of ``property_name`` reachable given the other current selections."""

    return {
        variant.properties[property_name]
        for variant in variants
        if variant.properties.get(property_name)
        and _is_compatible(variant, selection, ignore=property_name)
    }


def is_value_in_stock(
    variants: Iterable[Variant],
    selection: SelectionState,
    property_name: str,
    value: str,
) -> bool:
    """True if some in-stock variant carries ``value`` and fits the other selections."""

    return any(
        variant.in_stock
        and variant.properties.get(property_name) == value
        and _is_compatible(variant, selection, ignore=property_name)
        for variant in variants
    )


class VariantResolver:
    """Variant selection bound to one product's catalog and option schema."""

    def __init__(
        self,
        variants: Sequence[Variant],
        schema: VariantPropertySchema | None = None,
    ) -> None:
        self.variants = list(variants)
        self.schema = schema or {}

    def initialize(self, preferred_variant: Variant | None = None) -> Variant:
        return initialize(self.variants, preferred_variant)

    def initial_selection(self, preferred_variant: Variant | None = None) -> SelectionState:
        return dict(self.initialize(preferred_variant).properties)

    def match(self, selection: SelectionState) -> VariantMatch | None:
        return find_match(self.variants, selection)

    def select_value(
        self,
        current_selection: SelectionState,
        property_name: str,
        value: str,
    ) -> SelectionResult:
        """Apply one click and resolve the variant it leads to."""

        if not self.variants:
            raise EmptyCatalog()
        self._validate(property_name, value)

        selection = {**current_selection, property_name: value}
        match = self.match(selection)

        if match is None:
            logger.info(
                "No variant matches selection",
                extra={"selection": selection, "property": property_name},
            )
        elif isinstance(match, PartialMatch):
            logger.debug(
                "Partial variant match %s, missing %s",
                match.variant.id,
                match.missing_properties,
            )

        return SelectionResult(
            selection=selection,
            property_name=property_name,
            value=value,
            match=match,
        )

    def get_selectable_values(
        self,
        current_selection: SelectionState,
        property_name: str,
    ) -> set[str]:
        return get_selectable_values(self.variants, current_selection, property_name)

    def is_value_available(
        self,
        current_selection: SelectionState,
        property_name: str,
        value: str,
    ) -> bool:
        return value in self.get_selectable_values(current_selection, property_name)

    def is_value_in_stock(
        self,
        current_selection: SelectionState,
        property_name: str,
        value: str,
    ) -> bool:
        return is_value_in_stock(self.variants, current_selection, property_name, value)

    def option_states(self, current_selection: SelectionState) -> list[PropertyOptions]:
        """Describe every schema property the way the option selector renders it."""

        options: list[PropertyOptions] = []
        for property_name, prop in self.schema.items():
            if not prop.values:
                continue
            selectable = self.get_selectable_values(current_selection, property_name)
            selected = current_selection.get(property_name) or None
            options.append(
                PropertyOptions(
                    property_name=property_name,
                    display_name=prop.display_name,
                    property_type=prop.property_type,
                    selected_value=selected,
                    values=[
                        OptionValueState(
                            value=value,
                            available=value in selectable,
                            in_stock=self.is_value_in_stock(
                                current_selection, property_name, value
                            ),
                            selected=value == selected,
                        )
                        for value in prop.values
                    ],
                )
            )
        return options

    def _validate(self, property_name: str, value: str) -> None:
        if not self.schema:
            return
        prop = self.schema.get(property_name)
        if prop is None or (value and value not in prop.values):
            raise UnknownOptionValue(property_name, value)

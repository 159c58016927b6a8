# catalog/projection.py
import math
from decimal import ROUND_HALF_UP, Decimal

from .models import EnrichedResult, FilterState, PriceRange, QuickRange, SortOption
from .utils import representative_price

PLACEHOLDER_COVER = "/placeholder.png"

# (label, lower bound, upper bound before clamping to the ceiling)
QUICK_RANGE_PRESETS = (
    ("$0–$20", 0, 20),
    ("$20–$50", 20, 50),
    ("$50–$100", 50, 100),
)


def merge_prices(records, state):
    """Attach each record's display price and its source tag."""
    merged = []
    for r in records:
        estimate = state.price_for(r.id)
        merged.append(
            EnrichedResult(
                **r.model_dump(),
                price=representative_price(estimate),
                price_source=estimate.source or "",
            )
        )
    return merged


def default_filter(state):
    return FilterState(
        min_price=state.selected_min,
        max_price=state.selected_max,
        include_unknown=True,
    )


def keep(result, filters):
    if result.price is None:
        return filters.include_unknown
    return filters.min_price <= result.price <= filters.max_price


def apply_filter(results, filters):
    return [r for r in results if keep(r, filters)]


def sort_results(results, option):
    """
    Return a sorted copy of ``results``.

    Missing years sort as 0 and missing titles as "". Unknown prices sort
    last for ``price-asc`` and first for ``price-desc``. Ties keep their
    input order.
    """
    option = SortOption(option)
    if option is SortOption.YEAR_ASC:
        return sorted(results, key=lambda r: r.year or 0)
    if option is SortOption.YEAR_DESC:
        return sorted(results, key=lambda r: r.year or 0, reverse=True)
    if option is SortOption.TITLE_ASC:
        return sorted(results, key=lambda r: r.title or "")
    if option is SortOption.PRICE_ASC:
        return sorted(results, key=lambda r: math.inf if r.price is None else r.price)
    if option is SortOption.PRICE_DESC:
        return sorted(results, key=lambda r: (r.price is not None, -(r.price or 0)))
    return list(results)


def project(records, state, filters=None, sort=SortOption.RELEVANCE):
    """
    Build the displayed list for a search run.

    Args:
        records (list[SearchResult]): results in relevance order
        state (EnrichmentState): prices and range of the run
        filters (FilterState, optional): defaults to the run's full range
            with unknown prices included
        sort (SortOption or str): ordering to apply

    Returns:
        list[EnrichedResult]: merged, filtered and sorted results

    Note:
        The price filter only applies once the state is ready; before that
        every record is shown. Inputs are never mutated.
    """
    merged = merge_prices(records, state)
    if state.ready:
        merged = apply_filter(merged, filters or default_filter(state))
    return sort_results(merged, sort)


def quick_ranges(state):
    presets = [
        QuickRange(label=label, min=low, max=min(high, state.ceiling))
        for label, low, high in QUICK_RANGE_PRESETS
    ]
    presets.append(QuickRange(label="All", min=state.floor, max=state.ceiling))
    return presets


def price_range(state, filters=None):
    filters = filters or default_filter(state)
    return PriceRange(
        floor=state.floor,
        ceiling=state.ceiling,
        min=filters.min_price,
        max=filters.max_price,
        quick_ranges=quick_ranges(state),
    )


def format_usd(amount):
    """Whole-dollar USD text, e.g. ``$25``; halves round up. An em dash when unknown."""
    if amount is None:
        return "—"
    dollars = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"${dollars:,}"


def cover_url(result):
    return result.cover_image or result.thumb or PLACEHOLDER_COVER

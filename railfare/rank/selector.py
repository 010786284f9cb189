"""Pick the round trip(s) answering a query constraint.

Policies, in order: paginated "more" results, price ceiling with cheapest
fallback, month / date unavailability, plain cheapest. An empty selection is
never an error; it always comes with a message explaining it.
"""

from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Sequence, Tuple

from railfare.config import settings
from railfare.routes import DEFAULT_DIRECTION
from railfare.types import (
    MessageKind,
    QueryConstraint,
    RoundTrip,
    SelectionMessage,
    SelectionResult,
    WeekdayClass,
)
from railfare.utils.dates import is_month_within_window, month_name, today as current_day

PHRASES = {
    MessageKind.MORE_TICKETS: "More tickets, ascending by price:",
    MessageKind.LAST_PAIR: "Here is the last pair of tickets:",
    MessageKind.ONE_PER_DAY: "There is only one cheapest pair of tickets per day.",
    MessageKind.NO_MORE: "That's all, there are no more tickets.",
    MessageKind.OVER_PRICE: "I couldn't find tickets for {price} ₽ or less. Here is the cheapest pair:",
    MessageKind.MONTH_EMPTY: "I couldn't find tickets for {month_name}.",
    MessageKind.MONTH_BEYOND_WINDOW: (
        "No tickets for {month_name} yet: tickets go on sale {window_days} days ahead, no earlier."
    ),
    MessageKind.DATE_EMPTY: "I can't find a ticket for this date.",
    MessageKind.DATE_BEYOND_WINDOW: (
        "No tickets for {month_name} yet: tickets go on sale {window_days} days ahead, no earlier."
    ),
    MessageKind.NO_TICKETS: "I couldn't find tickets matching these conditions.",
}


def make_message(kind: MessageKind, **params: Any) -> SelectionMessage:
    if "month" in params and "month_name" not in params:
        params["month_name"] = month_name(params["month"])
    return SelectionMessage(kind=kind, text=PHRASES[kind].format(**params), params=params)


def sort_key(rt: RoundTrip) -> Tuple[int, datetime]:
    return rt.total_cost, rt.outbound.departure


def apply_filter(constraint: QueryConstraint, roundtrips: Sequence[RoundTrip]) -> List[RoundTrip]:
    """AND of every non-pagination clause; band and date refer to the outbound leg."""
    direction = constraint.direction or DEFAULT_DIRECTION

    def keep(rt: RoundTrip) -> bool:
        if rt.direction != direction:
            return False
        if constraint.band is not None and rt.band != constraint.band:
            return False
        if constraint.weekday_class != WeekdayClass.ANY and rt.weekday_class != constraint.weekday_class:
            return False
        if constraint.month is not None and rt.month != constraint.month:
            return False
        if constraint.date is not None and rt.outbound.date != constraint.date:
            return False
        return True

    return [rt for rt in roundtrips if keep(rt)]


def paginate_more(filtered: Sequence[RoundTrip], segment: int, page_size: int) -> List[RoundTrip]:
    """Sorted page of everything but the single cheapest pair, which was shown already."""
    ordered = sorted(filtered, key=sort_key)[1:]
    offset = segment * page_size
    return ordered[offset:offset + page_size]


def select(
    constraint: QueryConstraint,
    roundtrips: Sequence[RoundTrip],
    *,
    today: Optional[date] = None,
    window_days: Optional[int] = None,
    page_size: Optional[int] = None,
) -> SelectionResult:
    today = today or current_day()
    window_days = window_days or settings.LOOKUP_WINDOW_DAYS
    page_size = page_size or settings.PAGE_SIZE

    filtered = apply_filter(constraint, roundtrips)

    if constraint.more:
        page = paginate_more(filtered, constraint.segment, page_size)
        if len(page) > 1:
            kind = MessageKind.MORE_TICKETS
        elif len(page) == 1:
            kind = MessageKind.LAST_PAIR
        elif constraint.date is not None:
            # The cheapest pair of that day was the previous answer
            kind = MessageKind.ONE_PER_DAY
        else:
            kind = MessageKind.NO_MORE
        return SelectionResult(results=page, message=make_message(kind))

    if constraint.total_cost is not None and filtered:
        cheap_enough = [rt for rt in filtered if rt.total_cost <= constraint.total_cost]
        if cheap_enough:
            nearest = min(cheap_enough, key=lambda rt: rt.outbound.departure)
            return SelectionResult(results=[nearest])
        cheapest = min(filtered, key=sort_key)
        return SelectionResult(
            results=[cheapest],
            message=make_message(MessageKind.OVER_PRICE, price=constraint.total_cost),
        )

    if constraint.month is not None and not filtered:
        if is_month_within_window(constraint.month, today, window_days):
            return SelectionResult(message=make_message(MessageKind.MONTH_EMPTY, month=constraint.month))
        return SelectionResult(message=make_message(
            MessageKind.MONTH_BEYOND_WINDOW, month=constraint.month, window_days=window_days,
        ))

    if constraint.date is not None and not filtered:
        if constraint.date < today + timedelta(days=window_days):
            return SelectionResult(message=make_message(MessageKind.DATE_EMPTY, date=constraint.date.isoformat()))
        return SelectionResult(message=make_message(
            MessageKind.DATE_BEYOND_WINDOW,
            date=constraint.date.isoformat(),
            month=constraint.date.month,
            window_days=window_days,
        ))

    if not filtered:
        return SelectionResult(message=make_message(MessageKind.NO_TICKETS))
    return SelectionResult(results=[min(filtered, key=sort_key)])

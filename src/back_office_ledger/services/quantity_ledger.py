"""Ordered versus fulfilled quantities across deliveries and goods receipts."""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from decimal import Decimal

from back_office_ledger.config import Settings
from back_office_ledger.domain.documents import FulfillmentRecord
from back_office_ledger.domain.money import ZERO, clamp, to_decimal
from back_office_ledger.domain.value_objects import OrderLineKey
from back_office_ledger.exceptions import OverDeliveryError
from back_office_ledger.logging_config import get_logger
from back_office_ledger.services.interfaces import LedgerSummary, RemainingResult

logger = get_logger(__name__)


class QuantityLedger:
    """Track how much of each order line has been delivered or received.

    Records are grouped by the order line they point back to. A split
    delivery copies the same ordered quantity onto each fragment, so the
    ordered figure of a group is the largest one seen, while fulfilled
    quantities add up.

    Works on whatever snapshot of records it is given; serializing writes
    to the underlying rows is the storage layer's job.
    """

    def __init__(self, strict: bool = True) -> None:
        self._strict = strict

    @classmethod
    def from_settings(cls, settings: Settings) -> "QuantityLedger":
        return cls(strict=settings.strict_over_delivery)

    def remaining(
        self, ordered_quantity: Decimal, records: Iterable[FulfillmentRecord]
    ) -> Decimal:
        """Quantity still to fulfil against ``ordered_quantity``.

        Raises:
            OverDeliveryError: If the records fulfil more than was ordered
                and the ledger is strict.
        """
        ordered = to_decimal(ordered_quantity)
        fulfilled = ZERO
        for record in records:
            record.validate()
            fulfilled += record.fulfilled_quantity
        if fulfilled > ordered:
            self._over_delivery("ad-hoc", ordered, fulfilled)
        return max(ZERO, ordered - fulfilled)

    def aggregate_across_documents(
        self, key: OrderLineKey, records: Iterable[FulfillmentRecord]
    ) -> RemainingResult:
        """Aggregate every fragment that counts against ``key``.

        Records for other order lines are ignored, so callers can pass all
        the delivery items of a customer or a sales order at once.
        """
        group = [record for record in records if record.order_line_key == key]
        return self._aggregate(key, group)

    def group(
        self, records: Iterable[FulfillmentRecord]
    ) -> dict[OrderLineKey, list[FulfillmentRecord]]:
        grouped: dict[OrderLineKey, list[FulfillmentRecord]] = defaultdict(list)
        for record in records:
            grouped[record.order_line_key].append(record)
        return dict(grouped)

    def summarize(
        self,
        records: Iterable[FulfillmentRecord],
        ordered: Mapping[OrderLineKey, Decimal] | None = None,
    ) -> LedgerSummary:
        """Results for every order line of a document.

        ``ordered`` lists the document's order lines with their quantities,
        so lines that have no fulfillment yet still count as outstanding.
        """
        grouped = self.group(records)
        keys = list(grouped)
        for key in ordered or {}:
            if key not in grouped:
                keys.append(key)

        results = []
        for key in keys:
            floor = to_decimal(ordered[key]) if ordered and key in ordered else None
            results.append(self._aggregate(key, grouped.get(key, []), floor))
        return LedgerSummary(lines=tuple(results))

    def _aggregate(
        self,
        key: OrderLineKey,
        group: list[FulfillmentRecord],
        ordered_floor: Decimal | None = None,
    ) -> RemainingResult:
        total_ordered = ordered_floor if ordered_floor is not None else ZERO
        fulfilled = picked = damaged = short = ZERO
        for record in group:
            record.validate()
            total_ordered = max(total_ordered, record.ordered_quantity)
            fulfilled += record.fulfilled_quantity
            picked += record.picked_quantity
            damaged += record.damaged_quantity
            short += record.short_quantity

        over_delivered = fulfilled > total_ordered
        if over_delivered:
            self._over_delivery(str(key), total_ordered, fulfilled)

        return RemainingResult(
            key=key,
            total_ordered=total_ordered,
            total_fulfilled=fulfilled,
            total_remaining=clamp(total_ordered - fulfilled, ZERO, total_ordered),
            total_picked=picked,
            total_damaged=damaged,
            total_short=short,
            fragment_count=len(group),
            over_delivered=over_delivered,
        )

    def _over_delivery(self, order_line: str, ordered: Decimal, fulfilled: Decimal) -> None:
        if self._strict:
            raise OverDeliveryError(order_line, ordered, fulfilled)
        logger.warning(
            "over_delivery_flagged",
            order_line=order_line,
            ordered=str(ordered),
            fulfilled=str(fulfilled),
        )


def compute_remaining(
    key: OrderLineKey, records: Iterable[FulfillmentRecord], strict: bool = True
) -> RemainingResult:
    return QuantityLedger(strict=strict).aggregate_across_documents(key, records)

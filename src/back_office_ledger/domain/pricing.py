"""Markup configuration used to price lines from their cost."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from back_office_ledger.domain.money import to_decimal
from back_office_ledger.domain.value_objects import CustomerType, MarkupLevel

DEFAULT_RETAIL_MARKUP = Decimal("70.00")
DEFAULT_WHOLESALE_MARKUP = Decimal("40.00")

_LEVEL_RANK = {
    MarkupLevel.SYSTEM: 0,
    MarkupLevel.CATEGORY: 1,
    MarkupLevel.ITEM: 2,
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class MarkupConfiguration:
    """A markup rule at system, category or item level.

    ``entity_id`` is None for the system level, the category id for the
    category level and the item id for the item level.
    """

    level: MarkupLevel
    retail_markup_percent: Decimal
    wholesale_markup_percent: Decimal
    id: UUID = field(default_factory=uuid4)
    entity_id: UUID | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        self.retail_markup_percent = to_decimal(self.retail_markup_percent)
        self.wholesale_markup_percent = to_decimal(self.wholesale_markup_percent)
        if self.level == MarkupLevel.SYSTEM and self.entity_id is not None:
            raise ValueError("System-level markup cannot target an entity")
        if self.level != MarkupLevel.SYSTEM and self.entity_id is None:
            raise ValueError(f"{self.level.value}-level markup needs an entity_id")

    def percent_for(self, customer_type: CustomerType) -> Decimal:
        if customer_type == CustomerType.WHOLESALE:
            return self.wholesale_markup_percent
        return self.retail_markup_percent

    def is_effective(self, as_of: datetime) -> bool:
        if not self.is_active:
            return False
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of >= self.effective_to:
            return False
        return True

    def applies_to(self, item_id: UUID | None, category_id: UUID | None) -> bool:
        if self.level == MarkupLevel.SYSTEM:
            return True
        if self.level == MarkupLevel.CATEGORY:
            return category_id is not None and self.entity_id == category_id
        return item_id is not None and self.entity_id == item_id


def default_markup_configuration() -> MarkupConfiguration:
    return MarkupConfiguration(
        level=MarkupLevel.SYSTEM,
        retail_markup_percent=DEFAULT_RETAIL_MARKUP,
        wholesale_markup_percent=DEFAULT_WHOLESALE_MARKUP,
    )


def select_markup(
    configs: Iterable[MarkupConfiguration],
    customer_type: CustomerType = CustomerType.RETAIL,
    item_id: UUID | None = None,
    category_id: UUID | None = None,
    as_of: datetime | None = None,
) -> Decimal:
    """Return the most specific effective markup percent.

    Item beats category beats system. Among rules at the same level the
    one that became effective most recently wins. Falls back to the
    built-in system default when nothing matches.
    """
    moment = as_of or _utc_now()
    candidates = [
        config
        for config in configs
        if config.is_effective(moment) and config.applies_to(item_id, category_id)
    ]
    if not candidates:
        return default_markup_configuration().percent_for(customer_type)

    oldest = datetime.min.replace(tzinfo=UTC)
    best = max(
        candidates,
        key=lambda c: (_LEVEL_RANK[c.level], c.effective_from or oldest),
    )
    return best.percent_for(customer_type)

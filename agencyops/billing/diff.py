"""Billing plan diff engine.

Reconciles a stored billing plan against a freshly simulated one:

- build_plan_diff: pair suggested and stored lines by (billing_date,
  item_category) and classify each suggestion as UNCHANGED / CHANGED / NEW.
- AcceptanceSet: per-line operator decisions keyed by stable line_id.
- resolve_final_items: the list to persist on confirm — suggested amount
  when accepted, else the stored amount, else the line is dropped.

Stored lines without a suggested counterpart are outside the diff.

Deterministic — no DB or network access.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from agencyops.models.billing import (
    BillingPlanItem,
    ChangedLine,
    DiffLine,
    NewLine,
    UnchangedLine,
    line_key,
)


def _line_ids(items: Sequence[BillingPlanItem]) -> list[str]:
    """Stable ids for items: the match key, suffixed by ordinal on repeats."""
    seen: dict[str, int] = defaultdict(int)
    ids: list[str] = []
    for item in items:
        key = line_key(item.billing_date, item.item_category)
        ordinal = seen[key]
        seen[key] += 1
        ids.append(key if ordinal == 0 else f"{key}#{ordinal}")
    return ids


def build_plan_diff(
    existing_items: Sequence[BillingPlanItem],
    suggested_items: Sequence[BillingPlanItem],
) -> list[DiffLine]:
    """Classify every suggested item against the stored plan."""
    existing_by_id = dict(zip(_line_ids(existing_items), existing_items))

    lines: list[DiffLine] = []
    for line_id, suggested in zip(_line_ids(suggested_items), suggested_items):
        common = {
            "line_id": line_id,
            "billing_date": suggested.billing_date,
            "item_category": suggested.item_category,
            "description": suggested.description,
            "is_prorated": suggested.is_prorated,
            "prorated_days": suggested.prorated_days,
            "bill_to": suggested.bill_to,
            "calculated_from": suggested.calculated_from,
        }
        match = existing_by_id.get(line_id)

        if match is None:
            lines.append(NewLine(suggested_amount=suggested.amount, **common))
        elif Decimal(match.amount) == Decimal(suggested.amount):
            lines.append(UnchangedLine(
                existing_item_id=match.item_id,
                amount=match.amount,
                **common,
            ))
        else:
            lines.append(ChangedLine(
                existing_item_id=match.item_id,
                existing_amount=match.amount,
                suggested_amount=suggested.amount,
                existing_description=match.description,
                **common,
            ))

    return lines


def suggested_total(lines: Iterable[DiffLine]) -> Decimal:
    return sum((line.suggested_amount for line in lines), Decimal("0"))


class AcceptanceSet:
    """Operator decisions over the different lines of one diff.

    Only lines with ``is_different`` accept a decision; unchanged lines keep
    the stored amount regardless.
    """

    def __init__(self, lines: Sequence[DiffLine] = ()) -> None:
        self._different = {line.line_id for line in lines if line.is_different}
        self._accepted: dict[str, bool] = {}

    def is_accepted(self, line_id: str) -> bool:
        return self._accepted.get(line_id, False)

    def toggle(self, line_id: str) -> bool:
        """Flip the decision for a line and return the new state."""
        if line_id not in self._different:
            msg = f"Line {line_id!r} has no pending difference to accept."
            raise KeyError(msg)
        self._accepted[line_id] = not self.is_accepted(line_id)
        return self._accepted[line_id]

    def accept_all(self) -> None:
        """Accept every different line, overwriting earlier choices."""
        self._accepted = {line_id: True for line_id in self._different}

    def clear(self) -> None:
        self._accepted = {}

    def as_mapping(self) -> dict[str, bool]:
        return {line_id: True for line_id, ok in self._accepted.items() if ok}

    def __len__(self) -> int:
        return sum(1 for ok in self._accepted.values() if ok)


def resolve_final_items(
    lines: Iterable[DiffLine],
    accepted: Mapping[str, bool],
) -> list[BillingPlanItem]:
    """Apply operator decisions to a diff, returning the items to persist."""
    final: list[BillingPlanItem] = []
    for line in lines:
        description = line.description
        if isinstance(line, UnchangedLine):
            amount, item_id = line.amount, line.existing_item_id
        elif isinstance(line, ChangedLine):
            item_id = line.existing_item_id
            if accepted.get(line.line_id, False):
                amount = line.suggested_amount
            else:
                amount = line.existing_amount
                description = line.existing_description
        elif isinstance(line, NewLine):
            if not accepted.get(line.line_id, False):
                continue
            amount, item_id = line.suggested_amount, None
        else:
            msg = f"Unknown diff line kind: {type(line).__name__}"
            raise TypeError(msg)

        final.append(BillingPlanItem(
            item_id=item_id,
            billing_date=line.billing_date,
            item_category=line.item_category,
            amount=amount,
            description=description,
            is_prorated=line.is_prorated,
            prorated_days=line.prorated_days,
            bill_to=line.bill_to,
            calculated_from=line.calculated_from,
        ))
    return final

"""Sequential submission of approved proposals.

Orders go out one at a time: the platform is rate and session sensitive,
and one proposal failing must never affect its siblings.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from mealpilot import metrics
from mealpilot.client.base import MealGateway
from mealpilot.models.plan import ExecutionResult, Proposal
from mealpilot.models.slot import Address, AddressBook, Slot
from mealpilot.planner.attempt import attempt
from mealpilot.planner.utils import target_time_for

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE_KEY = "default"

LogSink = Callable[[str], None]


class AddressResolver:
    """Per-batch address lookup with a lazily filled, per-namespace cache.

    Address ids only mean something inside their namespace; the display name
    is what carries across namespaces, so the resolver learns a preferred
    name and matches on it.
    """

    def __init__(self, gateway: MealGateway, log: Optional[LogSink] = None) -> None:
        self._gateway = gateway
        self._log = log or (lambda message: None)
        self._cache: dict[str, AddressBook] = {}
        self.preferred_name: Optional[str] = None

    def book_for(self, namespace: Optional[str]) -> AddressBook:
        key = namespace or DEFAULT_NAMESPACE_KEY
        if key not in self._cache:
            outcome = attempt(
                f"Address lookup for namespace {key}", self._gateway.fetch_addresses, namespace
            )
            if outcome.ok and outcome.value is not None:
                self._cache[key] = outcome.value
            else:
                self._log(f"Could not load addresses for namespace {key}: {outcome.message}")
                self._cache[key] = AddressBook()
        return self._cache[key]

    def learn_preferred_name(
        self,
        proposals: Sequence[Proposal],
        slots: Iterable[Slot],
        default_address_id: Optional[str],
    ) -> Optional[str]:
        """Capture the display name of the user's usual address, if one can be found."""

        if default_address_id:
            sample_namespace = next((p.namespace for p in proposals if p.namespace), None)
            address = self.book_for(sample_namespace).find_by_id(default_address_id)
            if address is not None:
                self.preferred_name = address.name

        if self.preferred_name is None:
            used = next((slot for slot in slots if slot.user_address_unique_id), None)
            if used is not None:
                address = self.book_for(used.namespace).find_by_id(used.user_address_unique_id)
                if address is not None:
                    self.preferred_name = address.name

        if self.preferred_name:
            logger.debug("Preferred delivery address name: %s", self.preferred_name)
        return self.preferred_name

    def resolve(self, proposal: Proposal) -> Optional[str]:
        """Return the address id to order ``proposal`` to, or None if nothing fits."""

        if proposal.user_address_unique_id:
            return proposal.user_address_unique_id

        book = self.book_for(proposal.namespace)
        matched = book.find_by_name(self.preferred_name)
        if matched is not None:
            return matched.unique_id

        chosen: Optional[Address] = book.find_by_id(book.default_address_id)
        if chosen is None and book.addresses:
            chosen = book.addresses[0]
        if chosen is None:
            return None
        if self.preferred_name is None:
            self.preferred_name = chosen.name
        return chosen.unique_id


def execute_batch(
    gateway: MealGateway,
    proposals: Sequence[Proposal],
    *,
    slots: Iterable[Slot] = (),
    default_address_id: Optional[str] = None,
    log: Optional[LogSink] = None,
) -> list[ExecutionResult]:
    """Place every proposal in order and return exactly one result per proposal."""

    emit = log or (lambda message: None)
    resolver = AddressResolver(gateway, emit)
    resolver.learn_preferred_name(proposals, list(slots), default_address_id)

    results: list[ExecutionResult] = []
    for proposal in proposals:
        emit(f"Ordering {proposal.dish.name} for {proposal.date.isoformat()}")
        error: Optional[str] = None

        address_id = resolver.resolve(proposal)
        if not address_id:
            error = f"No valid address found for namespace {proposal.namespace or 'unknown'}"
        else:
            outcome = attempt(
                f"Order for {proposal.date.isoformat()} {proposal.meal_time.value}",
                gateway.place_order,
                proposal.tab_unique_id,
                proposal.dish.id,
                target_time_for(proposal.date, proposal.meal_time),
                address_id,
                address_id,
            )
            if not outcome.ok:
                error = outcome.message

        if error is None:
            emit(f"Ordered {proposal.date.isoformat()}")
            metrics.ORDERS_SUBMITTED.labels(result="success").inc()
        else:
            emit(f"Order for {proposal.date.isoformat()} failed: {error}")
            metrics.ORDERS_SUBMITTED.labels(result="failure").inc()

        results.append(
            ExecutionResult(
                date=proposal.date,
                dish_name=proposal.dish.name,
                success=error is None,
                message=error,
            )
        )
    return results

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from errors import InvalidTransitionError
from repository import EVENTS, ORDERS, SAMPLE_REQUESTS, StoreRepository
from schemas import EventStatus, OrderStatus, SampleStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Action:
    label: str
    next_status: str


@dataclass(frozen=True)
class Workflow:
    entity: str
    collection: str
    getter: str
    statuses: Type[Enum]
    initial: Enum
    transitions: Dict[Enum, Tuple[Enum, ...]]
    labels: Dict[Enum, str] = field(default_factory=dict)
    terminal_label: Optional[str] = "Archived"

    def parse(self, raw: Optional[str]) -> Optional[Enum]:
        """Case-insensitive; empty means the initial status, unknown means None."""
        if raw is None or str(raw).strip() == "":
            return self.initial
        try:
            return self.statuses(str(raw).strip().lower())
        except ValueError:
            return None

    def allowed(self, current: Optional[str]) -> Tuple[Enum, ...]:
        status = self.parse(current)
        if status is None:
            return ()
        return self.transitions.get(status, ())

    def next_action(self, current: Optional[str]) -> Optional[Action]:
        status = self.parse(current)
        allowed = self.allowed(current)
        if not allowed:
            return None
        return Action(label=self.labels.get(status, allowed[0].value.title()), next_status=allowed[0].value)

    def check(self, current: Optional[str], requested: str) -> Enum:
        # blank only means "initial" for stored rows, never as a request
        target = self.parse(requested) if str(requested or "").strip() else None
        if target is None or target not in self.allowed(current):
            raise InvalidTransitionError(self.entity, str(current or self.initial.value), str(requested))
        return target


ORDER_WORKFLOW = Workflow(
    entity="order",
    collection=ORDERS,
    getter="get_order",
    statuses=OrderStatus,
    initial=OrderStatus.PENDING,
    transitions={
        OrderStatus.PENDING: (OrderStatus.PROCESSING,),
        OrderStatus.PROCESSING: (OrderStatus.COMPLETED,),
    },
    labels={
        OrderStatus.PENDING: "Verify Payment",
        OrderStatus.PROCESSING: "Mark Dispatched",
    },
)

# "shipped" is an older spelling of processing; read but never written
SAMPLE_WORKFLOW = Workflow(
    entity="sample request",
    collection=SAMPLE_REQUESTS,
    getter="get_sample_request",
    statuses=SampleStatus,
    initial=SampleStatus.PENDING,
    transitions={
        SampleStatus.PENDING: (SampleStatus.PROCESSING,),
        SampleStatus.PROCESSING: (SampleStatus.COMPLETED,),
        SampleStatus.SHIPPED: (SampleStatus.COMPLETED,),
    },
    labels={
        SampleStatus.PENDING: "Approve & Ship",
        SampleStatus.PROCESSING: "Mark Completed",
        SampleStatus.SHIPPED: "Mark Completed",
    },
)

# Manual correction toggle, both directions allowed
EVENT_WORKFLOW = Workflow(
    entity="event",
    collection=EVENTS,
    getter="get_event",
    statuses=EventStatus,
    initial=EventStatus.UPCOMING,
    transitions={
        EventStatus.UPCOMING: (EventStatus.PAST,),
        EventStatus.PAST: (EventStatus.UPCOMING,),
    },
    labels={
        EventStatus.UPCOMING: "Mark as Past",
        EventStatus.PAST: "Set as Upcoming",
    },
    terminal_label=None,
)


def advance(repo: StoreRepository, workflow: Workflow, record_id: str, next_status: str) -> str:
    """
    Move one row to next_status if the workflow's table allows it.

    Only the status field of the matching row is written, in lowercase.
    Callers reload their listing afterwards; there is no optimistic update.
    """
    current = getattr(repo, workflow.getter)(record_id)
    target = workflow.check(current.status, next_status)
    repo.update_status(workflow.collection, record_id, target.value)
    logger.info("%s %s: %s -> %s", workflow.entity, record_id, current.status, target.value)
    return target.value

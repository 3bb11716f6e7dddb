"""
Receiving Workflows.

State machine for goods receipt headers.  ``GoodsReceiptService`` checks
every header mutation against ``RECEIPT_WORKFLOW`` before touching stock.
"""

from dataclasses import dataclass

from stock_kernel.logging_config import get_logger

logger = get_logger("modules.receiving.workflows")


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """The transition for ``action`` out of ``from_state``, if allowed."""
        for transition in self.transitions:
            if transition.from_state == from_state and transition.action == action:
                return transition
        return None

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        return tuple(
            t.action for t in self.transitions if t.from_state == from_state
        )


# -----------------------------------------------------------------------------
# Receipt Workflow
# -----------------------------------------------------------------------------

RECEIPT_WORKFLOW = Workflow(
    name="goods_receipt",
    description="Goods receipt intake and disposition",
    initial_state="PENDING",
    states=(
        "PENDING",
        "INSPECTING",
        "COMPLETED",
        "CANCELLED",
    ),
    transitions=(
        Transition("PENDING", "INSPECTING", action="begin_inspection"),
        Transition("PENDING", "PENDING", action="update"),
        Transition("INSPECTING", "INSPECTING", action="grade_item"),
        Transition("PENDING", "COMPLETED", action="complete"),
        Transition("INSPECTING", "COMPLETED", action="complete"),
        Transition("PENDING", "CANCELLED", action="cancel"),
        Transition("INSPECTING", "CANCELLED", action="cancel"),
        Transition("COMPLETED", "CANCELLED", action="cancel"),
    ),
)

logger.debug(
    "receiving_workflow_registered",
    extra={
        "workflow_name": RECEIPT_WORKFLOW.name,
        "state_count": len(RECEIPT_WORKFLOW.states),
        "transition_count": len(RECEIPT_WORKFLOW.transitions),
        "initial_state": RECEIPT_WORKFLOW.initial_state,
    },
)

"""
Custom data structures for the trajectory propagator.

Structures
----------
Propagator      -- State formulation selector for a propagation run.
ActionType      -- Category tags for deferred actions.
DeferredAction  -- A staged callback plus its bookkeeping.
ActionQueue     -- Per-run FIFO of callbacks staged during an integration
                   step and executed exactly once after the step commits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Callable, Hashable, List, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Propagator selection
# ---------------------------------------------------------------------------

class Propagator(Enum):
    """State formulation driven by the integrator.

    GAUSSIAN_VOP integrates the classical elements through the Gauss
    variational equations; it is singular for circular, equatorial and
    hyperbolic orbits.  CARTESIAN integrates position and velocity and
    works in all cases.
    """
    GAUSSIAN_VOP = auto()
    CARTESIAN = auto()


# ---------------------------------------------------------------------------
# Deferred actions
# ---------------------------------------------------------------------------

class ActionType(Enum):
    """Enumeration of actions that may be staged during a step."""
    FRAME_SWITCH = auto()
    ADD_CARGO = auto()
    DROP_CARGO = auto()


@dataclass
class DeferredAction:
    """A callback staged for execution at the next step boundary.

    Attributes
    ----------
    callback : Callable[[datetime], Any]
        Function run once when the queue is drained; receives the epoch
        of the committed step.
    action_type : ActionType
        Category tag, used for logging.
    key : Hashable, optional
        Deduplication key.  Two actions with the same non-None key staged
        in the same step collapse into the first one.
    label : str
        Human-readable description.
    """
    callback: Callable[[datetime], Any]
    action_type: ActionType
    key: Optional[Hashable] = None
    label: str = field(default="")


class ActionQueue:
    """FIFO of deferred actions owned by one spacecraft for one run.

    Actions that re-parent the orbit or change the vehicle mass are staged
    here during the trial evaluations of a step and run only once the
    integrator has committed it.

    ``drain`` runs each staged action exactly once, in staging order, and
    always leaves the queue empty, even when it was never populated or an
    action raised.
    """

    def __init__(self) -> None:
        self._actions: List[DeferredAction] = []

    def push(
        self,
        callback: Callable[[datetime], Any],
        action_type: ActionType,
        key: Optional[Hashable] = None,
        label: str = "",
    ) -> bool:
        """Stage a callback.

        Returns
        -------
        bool
            False if an action with the same key is already staged (the
            new one is dropped), True otherwise.
        """
        if key is not None and any(a.key == key for a in self._actions):
            logger.debug("Deferred action %s already staged", key)
            return False
        self._actions.append(DeferredAction(callback, action_type, key, label))
        return True

    def drain(self, when: datetime) -> int:
        """Execute every staged action once, then clear the queue.

        Parameters
        ----------
        when : datetime
            Epoch of the step that was just committed.

        Returns
        -------
        int
            Number of actions executed.
        """
        pending, self._actions = self._actions, []
        for action in pending:
            logger.debug("Executing deferred action: %s", action.label or action.action_type.name)
            action.callback(when)
        return len(pending)

    def __len__(self) -> int:
        return len(self._actions)

    def __bool__(self) -> bool:
        return bool(self._actions)

    def __repr__(self) -> str:
        return f"ActionQueue(pending={len(self._actions)})"

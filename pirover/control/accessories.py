"""
Toggle-style rover accessories (lights).

Each accessory is an independent boolean; there is no exclusion between them,
so headlights, taillights and hazards may all be on together. A set is
forwarded to the rover every time, even when the value does not change.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Dict, Union

if TYPE_CHECKING:
    from pirover.session.pipeline import PipelineStateMachine

logger = logging.getLogger(__name__)


class Accessory(str, enum.Enum):
    HEADLIGHTS = "headlights"
    TAILLIGHTS = "taillights"
    HAZARDS = "hazards"

    @property
    def mask(self) -> int:
        """Bit in the control packet's lights word."""
        return _LIGHT_BITS[self]


_LIGHT_BITS = {
    Accessory.HEADLIGHTS: 1 << 0,
    Accessory.TAILLIGHTS: 1 << 1,
    Accessory.HAZARDS: 1 << 2,
}


AccessoryId = Union[Accessory, str]


class AccessoryState:
    """Current on/off value of every accessory, forwarded through the pipeline."""

    def __init__(self, machine: "PipelineStateMachine") -> None:
        self._machine = machine
        self._values: Dict[Accessory, bool] = {acc: False for acc in Accessory}

    def set_accessory(self, accessory: AccessoryId, on: bool) -> None:
        """Forward ``on`` to the rover; raises PipelineNotReady outside Initialized..Paused."""
        acc = Accessory(accessory)
        on = bool(on)
        with self._machine.lock:
            self._machine.set_accessory(acc, on)
            self._values[acc] = on
        logger.debug("accessory %s -> %s", acc.value, on)

    def get(self, accessory: AccessoryId) -> bool:
        return self._values[Accessory(accessory)]

    def snapshot(self) -> Dict[Accessory, bool]:
        with self._machine.lock:
            return dict(self._values)


__all__ = ["Accessory", "AccessoryId", "AccessoryState"]

"""
Edge-triggered gesture reporting for the demo.

The detectors are stateless; this is the caller-side memory that turns a
per-frame label stream into "gesture changed" events, one slot per hand.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Optional


@dataclass(frozen=True)
class GestureTransition:
    hand: str
    previous: Optional[Hashable]
    current: Hashable


class GestureTransitionTracker:
    """
    Remembers the last gesture per hand.

    Example:
        tracker = GestureTransitionTracker(initial=HandGesture.OTHER)
        if tracker.update('left', gesture) is not None:
            print("left hand changed to", gesture)
    """

    def __init__(self, initial: Optional[Hashable] = None):
        self.initial = initial
        self._last: Dict[str, Optional[Hashable]] = {}

    def last(self, hand: str) -> Optional[Hashable]:
        return self._last.get(hand, self.initial)

    def update(self, hand: str, gesture: Hashable) -> Optional[Hashable]:
        """Record `gesture` for `hand`; return it only if it differs from the previous one."""
        transition = self.transition(hand, gesture)
        return None if transition is None else transition.current

    def transition(self, hand: str, gesture: Hashable) -> Optional[GestureTransition]:
        previous = self.last(hand)
        if gesture == previous:
            return None
        self._last[hand] = gesture
        return GestureTransition(hand=hand, previous=previous, current=gesture)

    def reset(self, hand: Optional[str] = None):
        if hand is None:
            self._last.clear()
        else:
            self._last.pop(hand, None)

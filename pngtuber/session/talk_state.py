"""
Talk state machine.

Turns the normalized volume stream into open/closed mouth transitions:
exponential smoothing, a single strict threshold, and edge detection.
"""

from dataclasses import dataclass
from typing import Optional

# Weight of the newest sample in the moving average
SMOOTHING_WEIGHT = 0.3


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted only when the talk state flips."""
    is_talking: bool
    smoothed_volume: float


class TalkStateMachine:
    """
    Smoothed, edge-triggered talking detector.

    Usage:
        machine = TalkStateMachine(threshold=30)
        event = machine.update(volume)
        if event:
            presenter.on_talk_state_changed(event.is_talking)
    """

    def __init__(self, threshold: int = 30):
        self._threshold = 30
        self.threshold = threshold
        self._smoothed_volume = 0.0
        self._is_talking = False

    @property
    def threshold(self) -> int:
        return self._threshold

    @threshold.setter
    def threshold(self, value: int):
        value = int(value)
        if not 0 <= value <= 100:
            raise ValueError(f"threshold must be in [0, 100], got {value}")
        self._threshold = value

    @property
    def smoothed_volume(self) -> float:
        return self._smoothed_volume

    @property
    def is_talking(self) -> bool:
        return self._is_talking

    def update(self, sample: float) -> Optional[TransitionEvent]:
        """
        Feed one volume sample (0-100).

        Returns:
            TransitionEvent if the talk state changed, None otherwise
        """
        self._smoothed_volume = (
            self._smoothed_volume * (1 - SMOOTHING_WEIGHT) +
            sample * SMOOTHING_WEIGHT
        )

        # Equal to the threshold is still silence
        should_talk = self._smoothed_volume > self._threshold

        if should_talk != self._is_talking:
            self._is_talking = should_talk
            return TransitionEvent(should_talk, self._smoothed_volume)
        return None

    def reset(self):
        """Back to a closed mouth and zero level."""
        self._smoothed_volume = 0.0
        self._is_talking = False

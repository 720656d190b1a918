"""Progress milestones reported while a response streams in."""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class ProgressStep:
    """A named milestone and the percentage it represents."""

    message: str
    progress: int


PROGRESS_STEPS: Dict[str, ProgressStep] = {
    "start": ProgressStep("Starting generation...", 15),
    "city_data": ProgressStep("Loading city information...", 25),
    "general_pois": ProgressStep("Finding points of interest...", 50),
    "itinerary": ProgressStep("Creating your itinerary...", 75),
    "hotels": ProgressStep("Finding accommodations...", 60),
    "restaurants": ProgressStep("Discovering restaurants...", 65),
    "activities": ProgressStep("Finding activities...", 70),
    "nearby": ProgressStep("Finding places near you...", 80),
    "complete": ProgressStep("Complete!", 100),
}

DEFAULT_STEP = ProgressStep("Processing...", 50)


def step_for(milestone: str) -> ProgressStep:
    """Return the progress step for a milestone name."""
    return PROGRESS_STEPS.get(milestone, DEFAULT_STEP)


class ProgressTracker:
    """Linear progress indicator for one stream.

    Milestones arrive in a roughly fixed order, but pivots (hotels at 60%
    after an itinerary at 75%) would move the bar backwards, so the
    reported percentage never decreases.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.progress = 0
        self.message = "Connecting..."

    def advance(self, milestone: str) -> ProgressStep:
        """Record ``milestone`` and return the resulting step."""
        step = step_for(milestone)
        self.progress = max(self.progress, step.progress)
        self.message = step.message
        return ProgressStep(self.message, self.progress)

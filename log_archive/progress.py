"""Throttled progress reporting for long read/write passes."""

import logging

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Logs a progress line each time the percentage reaches a new multiple of ten."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @staticmethod
    def should_report(step_number: int, step_count: int) -> bool:
        if step_count <= 0 or step_number <= 0:
            return False
        percent = step_number * 100 // step_count
        if percent % 10 != 0:
            return False
        previous = (step_number - 1) * 100 / step_count
        return step_number == 1 or previous < percent

    def record(self, action: str, step_number: int, step_count: int) -> None:
        if not self.enabled or not self.should_report(step_number, step_count):
            return
        percent = step_number * 100 // step_count
        logger.info("Action=%s, Progress=%d%% (Step %d/%d)", action, percent, step_number, step_count)

import logging
from typing import Callable

logger = logging.getLogger(__name__)


def run_side_effects(*effects: Callable[[], object]) -> None:
    """Run follow-up effects after a committed transition.

    Each effect is isolated; a failure is logged and the next effect still runs.
    """
    for effect in effects:
        try:
            effect()
        except Exception as e:
            logger.warning("Side effect %r failed: %s", effect, e)

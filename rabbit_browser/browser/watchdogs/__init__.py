from .mutation_watchdog import MutationWatchdog
from .overlay_watchdog import OverlayWatchdog

__all__ = [
	'MutationWatchdog',
	'OverlayWatchdog',
]

from .convergence import ConvergenceController
from .service import ElementDetector

__all__ = [
	'ConvergenceController',
	'ElementDetector',
]

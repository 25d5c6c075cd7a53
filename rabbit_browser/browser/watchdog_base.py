"""Base class for event-bus watchdogs."""

import logging
from typing import Any, ClassVar

from bubus import BaseEvent, EventBus
from pydantic import BaseModel, ConfigDict


class BaseWatchdog(BaseModel):
	"""
	A component that reacts to events on a detector's bus.

	Subclasses declare LISTENS_TO / EMITS and implement `on_<EventName>` handlers;
	`attach_to_bus()` wires every declared handler.
	"""

	model_config = ConfigDict(arbitrary_types_allowed=True, extra='forbid', validate_assignment=False)

	LISTENS_TO: ClassVar[list[type[BaseEvent[Any]]]] = []
	EMITS: ClassVar[list[type[BaseEvent[Any]]]] = []

	event_bus: EventBus
	# the owning ElementDetector (typed loosely to avoid an import cycle)
	detector: Any

	@property
	def logger(self) -> logging.Logger:
		return logging.getLogger(f'{type(self).__module__}.{type(self).__name__}')

	def attach_to_bus(self) -> None:
		for event_class in self.LISTENS_TO:
			handler_name = f'on_{event_class.__name__}'
			handler = getattr(self, handler_name, None)
			if handler is None:
				raise TypeError(f'{type(self).__name__} listens to {event_class.__name__} but has no {handler_name}()')
			self.event_bus.on(event_class, handler)
			self.logger.debug(f'🔗 {type(self).__name__}.{handler_name} attached to {self.event_bus}')

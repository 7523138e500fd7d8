# dozer.events - the core's event bus
# A closed set of event kinds.  Handlers run synchronously, in
# registration order, on whatever thread emits - which is always the
# daemon's event loop thread.

import enum

from dozer.logging import log

log = log.getChild('events')

class Event(enum.Enum):
	DEVICE_ADDED = 'device-added'                  # (path)
	DEVICE_REMOVED = 'device-removed'              # (path)
	DEVICES_UPDATED = 'devices-updated'            # ()
	LID_CLOSED = 'lid-closed'                      # ()
	LID_OPENED = 'lid-opened'                      # ()
	SWITCHED_TO_BATTERY = 'switched-to-battery'    # ()
	SWITCHED_TO_AC = 'switched-to-ac'              # ()
	PREPARE_FOR_SUSPEND = 'prepare-for-suspend'    # (sleeping)
	INHIBITORS_UPDATED = 'inhibitors-updated'      # (kind)
	CONFIG_UPDATE_REQUESTED = 'config-update-requested'  # ()

class EventBus:
	def __init__(self):
		self.handlers = {event: [] for event in Event}

	def connect(self, event, handler):
		self.handlers[event].append(handler)

	def disconnect(self, event, handler):
		self.handlers[event].remove(handler)

	def emit(self, event, *args):
		log.trace('Emitting %s%r', event.value, args)
		# Copy, so that handlers may (dis)connect handlers.
		for handler in list(self.handlers[event]):
			handler(*args)

# dozer.state - composite system state tracking
# Turns "something changed" notifications into lid / power source
# transitions.  Transitions are edge-triggered: repeated reports of the
# same value produce nothing.

from dozer.events import Event
from dozer.logging import log

log = log.getChild('state')

class StateTracker:
	# Last values we emitted a transition for.  The first poll only
	# records them: a daemon started with the lid shut is not a lid
	# closing.
	seeded = False
	was_lid_closed = False
	was_on_battery = False
	was_docked = False

	def __init__(self, properties, events):
		# Object providing lid_is_closed(), on_battery() and is_docked()
		# (normally the PowerCore).
		self.properties = properties
		self.events = events

	def poll(self):
		lid_closed = self.properties.lid_is_closed()
		on_battery = self.properties.on_battery()
		self.was_docked = self.properties.is_docked()

		if not self.seeded:
			self.seeded = True
			self.was_lid_closed = lid_closed
			self.was_on_battery = on_battery
			log.info('Initial state: %s.', self)

		if lid_closed != self.was_lid_closed:
			self.was_lid_closed = lid_closed
			log.info('Lid %s.', 'closed' if lid_closed else 'opened')
			self.events.emit(Event.LID_CLOSED if lid_closed else Event.LID_OPENED)

		if on_battery != self.was_on_battery:
			self.was_on_battery = on_battery
			log.info('Switched to %s power.', 'battery' if on_battery else 'AC')
			self.events.emit(Event.SWITCHED_TO_BATTERY if on_battery else Event.SWITCHED_TO_AC)

		self.events.emit(Event.DEVICES_UPDATED)

	def __str__(self):
		return 'lid closed: %s, on battery: %s, docked: %s' % (
			self.was_lid_closed,
			self.was_on_battery,
			self.was_docked,
		)

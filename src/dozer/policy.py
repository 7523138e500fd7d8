# dozer.policy - what to do when the lid closes or the battery runs out

import enum

from dozer.logging import log

log = log.getChild('policy')

class Action(enum.Enum):
	NONE = 'none'
	LOCK = 'lock'
	SLEEP = 'sleep'
	HIBERNATE = 'hibernate'
	SHUTDOWN = 'shutdown'


class PowerPolicy:
	# Whether the critical battery action has run since the battery
	# last went above the critical level.
	critical_dispatched = False

	def __init__(self, core, settings, displays):
		self.core = core
		self.settings = settings
		self.displays = displays

	# Run an action.  Returns the failure reason, or '' on success.
	def perform(self, action):
		match action:
			case Action.LOCK:
				result = self.core.lock_screen()
			case Action.SLEEP:
				result = self.core.suspend()
			case Action.HIBERNATE:
				result = self.core.hibernate()
			case Action.SHUTDOWN:
				result = self.core.power_off()
			case _:
				return ''
		if result:
			log.warning('Failed to %s: %s', action.value, result)
		return result

	def handle_lid_closed(self):
		if self.core.on_battery():
			action = self.settings.lid_battery_action
		else:
			action = self.settings.lid_ac_action

		if self.settings.disable_lid_on_external_monitors:
			self.displays.refresh()
			if self.displays.external_connected():
				log.info('Lid closed with an external monitor connected, ignoring.')
				return None

		log.info('Lid closed, action: %s', action.value)
		self.perform(action)
		return action

	def handle_prepare_for_suspend(self, sleeping):
		if sleeping and self.settings.lock_on_sleep:
			log.security('Locking the screen before sleep.')
			self.core.lock_screen()

	# Run the critical action once per crossing of the critical level.
	def check_battery(self):
		left = self.core.battery_left()
		if not self.core.on_battery() or left > self.settings.critical_battery:
			self.critical_dispatched = False
			return None
		# Unknown level; neither critical nor a recovery.
		if left <= 0:
			return None
		if self.critical_dispatched:
			return None
		self.critical_dispatched = True
		action = self.settings.critical_action
		log.warning('Battery critical (%.1f%%), action: %s', left, action.value)
		self.perform(action)
		return action


# Human-readable battery state.  Whether the battery is charging is
# guessed from the power source and level, so this is only a hint.
def describe_battery(left, on_battery):
	if left <= 0:
		return 'On AC'
	if left > 99:
		text = 'Charged'
	else:
		text = 'Battery at %d%%' % round(left)
	if not on_battery and left <= 99:
		text += ' (Charging)'
	return text

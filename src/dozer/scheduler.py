# dozer.scheduler - idle action scheduling
# Called once per tick.  Runs the configured idle action once the user
# has been idle for long enough, unless something holds a power
# management inhibitor.

from dozer.logging import log

log = log.getChild('scheduler')

class IdleScheduler:
	# Ticks since the last reset.
	timeouts = 0

	def __init__(self, settings, idle_minutes, on_battery, inhibitors, perform):
		self.settings = settings
		# Callable returning the user's idle time in whole minutes.
		self.idle_minutes = idle_minutes
		self.on_battery = on_battery
		# Power management InhibitorLedger.
		self.inhibitors = inhibitors
		# Callable running a dozer.policy.Action.
		self.perform = perform

	# The (timeout, action) pair for the current power source.
	def select(self):
		if self.on_battery():
			return (self.settings.suspend_battery_timeout,
					self.settings.suspend_battery_action)
		return (self.settings.suspend_ac_timeout,
				self.settings.suspend_ac_action)

	def reset(self):
		self.timeouts = 0

	def tick(self):
		idle = self.idle_minutes()
		timeout, action = self.select()
		log.debug('Tick: %d ticks, idle for %d min, timeout %d min, %d inhibitors.',
				  self.timeouts, idle, timeout, len(self.inhibitors))

		if (timeout > 0 and
			self.timeouts >= timeout and
			idle >= timeout and
			len(self.inhibitors) == 0):
			# Reset first: the action may well fail without changing
			# the idle time.
			self.timeouts = 0
			log.info('Idle for %d minutes, action: %s', idle, action.value)
			self.perform(action)
			return action

		self.timeouts += 1
		return None

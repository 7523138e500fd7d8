# dozer.core - power state aggregation and action arbitration
# Ties the backends, device registry, state tracker, inhibitor ledgers,
# lid / battery policy and idle scheduler together, and is the only
# thing the outside world (control socket, inhibit services) talks to.
# Everything here runs on the daemon's event loop thread.

import os
import subprocess

from dozer import backends, inhibitors
from dozer.backends import Verb
from dozer.devices import DeviceRegistry
from dozer.events import Event, EventBus
from dozer.logging import log
from dozer.policy import PowerPolicy
from dozer.scheduler import IdleScheduler
from dozer.state import StateTracker

log = log.getChild('core')

class PowerCore:
	def __init__(self, settings, idle_meter, displays, bus=None):
		self.settings = settings
		self.idle_meter = idle_meter
		self.displays = displays
		self.events = EventBus()

		self.logind = backends.LogindBackend(bus)
		self.consolekit = backends.ConsoleKitBackend(bus)
		self.upower = backends.UPowerBackend(bus)
		# In order of preference.
		self.selector = backends.BackendSelector([
			self.logind,
			self.consolekit,
			self.upower,
		])

		self.devices = DeviceRegistry(self.upower, self.events, self.on_battery)
		self.state = StateTracker(self, self.events)

		self.ss_inhibitors = inhibitors.InhibitorLedger(inhibitors.SCREENSAVER, self.events)
		self.pm_inhibitors = inhibitors.InhibitorLedger(inhibitors.POWER_MANAGEMENT, self.events)
		self.cookies = inhibitors.CookieJar(self.ss_inhibitors, self.pm_inhibitors)

		self.policy = PowerPolicy(self, settings, displays)
		self.scheduler = IdleScheduler(
			settings,
			idle_meter.idle_minutes,
			self.on_battery,
			self.pm_inhibitors,
			self.policy.perform,
		)

		self.events.connect(Event.LID_CLOSED, self.policy.handle_lid_closed)
		self.events.connect(Event.DEVICES_UPDATED, self.policy.check_battery)
		self.events.connect(Event.PREPARE_FOR_SUSPEND, self.policy.handle_prepare_for_suspend)
		# After the policy, so that the screen is locked before we let go.
		self.events.connect(Event.PREPARE_FOR_SUSPEND, self.handle_prepare_for_suspend)

		# Lock screen process, if we started one.
		self.locker_process = None

		# File descriptor of our logind "delay" sleep inhibitor lock.
		self.sleep_lock = None

	# Point all backends at a (new) system bus connection.
	def set_bus(self, bus):
		for backend in self.selector.backends:
			backend.bus = bus

	# Forget all devices and enumerate them again.
	def rescan(self):
		self.devices.clear()
		self.devices.scan()
		self.state.poll()

	def tick(self):
		return self.scheduler.tick()

	# Sleep inhibitor lock.  While we hold it, logind waits (up to
	# InhibitDelayMaxSec) for us to lock the screen before sleeping.

	def take_sleep_lock(self):
		if self.sleep_lock is not None or not self.settings.lock_on_sleep:
			return
		for backend in (self.logind, self.consolekit):
			if backend.is_available():
				self.sleep_lock = backend.inhibit('sleep', 'Lock the screen before sleep')
				break
		if self.sleep_lock is not None:
			log.debug('Took sleep inhibitor lock (fd %d).', self.sleep_lock)

	def release_sleep_lock(self):
		if self.sleep_lock is None:
			return
		log.debug('Releasing sleep inhibitor lock.')
		os.close(self.sleep_lock)
		self.sleep_lock = None

	def handle_prepare_for_suspend(self, sleeping):
		if sleeping:
			self.release_sleep_lock()
		else:
			self.take_sleep_lock()

	# Queries:

	def can_restart(self):
		return self.selector.query_capability(Verb.RESTART)

	def can_power_off(self):
		return self.selector.query_capability(Verb.POWER_OFF)

	def can_suspend(self):
		return self.selector.query_capability(Verb.SUSPEND)

	def can_hibernate(self):
		return self.selector.query_capability(Verb.HIBERNATE)

	def can_hybrid_sleep(self):
		return self.selector.query_capability(Verb.HYBRID_SLEEP)

	def is_docked(self):
		if self.logind.is_available():
			return self.logind.get_bool('Docked')
		return self.upower.get_bool('IsDocked')

	def lid_is_present(self):
		return self.upower.get_bool('LidIsPresent')

	def lid_is_closed(self):
		return self.upower.get_bool('LidIsClosed')

	def on_battery(self):
		return self.upower.get_bool('OnBattery')

	def battery_left(self):
		return self.devices.battery_left()

	def has_battery(self):
		return self.devices.has_battery()

	def time_to_empty(self):
		return self.devices.time_to_empty()

	def time_to_full(self):
		return self.devices.time_to_full()

	def screensaver_inhibitors(self):
		return self.ss_inhibitors.applications()

	def power_management_inhibitors(self):
		return self.pm_inhibitors.applications()

	# Query name (as used on the control socket) -> method
	QUERIES = {
		'can-restart': can_restart,
		'can-power-off': can_power_off,
		'can-suspend': can_suspend,
		'can-hibernate': can_hibernate,
		'can-hybrid-sleep': can_hybrid_sleep,
		'is-docked': is_docked,
		'lid-present': lid_is_present,
		'lid-closed': lid_is_closed,
		'on-battery': on_battery,
		'battery-left': battery_left,
		'has-battery': has_battery,
		'time-to-empty': time_to_empty,
		'time-to-full': time_to_full,
		'screensaver-inhibitors': screensaver_inhibitors,
		'power-management-inhibitors': power_management_inhibitors,
	}

	def query(self, name):
		return self.QUERIES[name](self)

	# Commands.  These return '' on success, or the reason for failure.

	def restart(self):
		return self.selector.execute_action(Verb.RESTART)

	def power_off(self):
		return self.selector.execute_action(Verb.POWER_OFF)

	def suspend(self):
		return self.selector.execute_action(Verb.SUSPEND)

	def hibernate(self):
		return self.selector.execute_action(Verb.HIBERNATE)

	def hybrid_sleep(self):
		return self.selector.execute_action(Verb.HYBRID_SLEEP)

	def lock_screen(self):
		if self.locker_process is not None and self.locker_process.poll() is None:
			log.debug('Lock screen is already running (PID %d).', self.locker_process.pid)
			return ''
		try:
			self.locker_process = subprocess.Popen(self.settings.lock_command)
		except OSError as e:
			return 'Failed to run %r: %s' % (self.settings.lock_command, e)
		log.debug('Started lock screen (PID %d).', self.locker_process.pid)
		return ''

	def update_config(self):
		self.events.emit(Event.CONFIG_UPDATE_REQUESTED)
		return ''

	# Command name (as used on the control socket) -> method
	COMMANDS = {
		'restart': restart,
		'power-off': power_off,
		'suspend': suspend,
		'hibernate': hibernate,
		'hybrid-sleep': hybrid_sleep,
		'lock-screen': lock_screen,
		'update-config': update_config,
	}

	def command(self, name):
		return self.COMMANDS[name](self)

	# Inhibitors:

	def ledger(self, kind):
		match kind:
			case inhibitors.SCREENSAVER:
				return self.ss_inhibitors
			case inhibitors.POWER_MANAGEMENT:
				return self.pm_inhibitors
		raise KeyError(kind)

	def inhibit(self, kind, cookie, application):
		self.ledger(kind).add(cookie, application)
		if kind == inhibitors.POWER_MANAGEMENT:
			# Start counting idle time anew once the inhibitor goes away.
			self.scheduler.reset()

	def uninhibit(self, kind, cookie):
		return self.ledger(kind).remove(cookie)

	def __str__(self):
		return '%s, %d devices, %d idle ticks' % (
			self.state,
			len(self.devices.devices),
			self.scheduler.timeouts,
		)

# dozer.modules.power - core on_start module
# Runs the power manager: subscribes to the system bus, and ticks the
# idle scheduler (and the bus liveness check) periodically.

import threading

import dozer
import dozer.config
import dozer.daemon
from dozer.bridge import EventBridge
from dozer.core import PowerCore
from dozer.displays import Displays
from dozer.events import Event
from dozer.xidle import IdleMeter

class PowerModule(dozer.module.Module):
	name = 'power'

	DBUS_SPEC = ('dbus',)

	def __init__(self):
		super().__init__()

		self.dbus = dozer.module.get(self.DBUS_SPEC)

		self.core = None
		self.bridge = None

		# Timer instance, which waits until the next tick
		self.timer = None

	def get_dependencies(self):
		return [self.DBUS_SPEC]

	def start(self):
		self.core = PowerCore(
			settings=dozer.config.configurator,
			idle_meter=IdleMeter(),
			displays=Displays(),
		)
		self.core.events.connect(Event.CONFIG_UPDATE_REQUESTED, dozer.config.reload)
		self.bridge = EventBridge(self.dbus.connect_system, dozer.daemon.call, self.core)
		try:
			self.bridge.subscribe()
		except Exception as e:
			# The tick will keep trying.
			self.log.warning('Failed to subscribe to the system bus: %s', e)
		self.timer_start_next()

	def stop(self):
		self.timer_cancel()
		self.bridge.unsubscribe()
		self.bridge = None
		self.core.release_sleep_lock()
		self.core.idle_meter.close()
		self.core = None

	def timer_cancel(self):
		if self.timer is not None:
			self.timer.cancel()
			self.timer = None

	def timer_start_next(self):
		self.timer_cancel()
		self.timer = threading.Timer(
			interval=dozer.config.configurator.tick_interval,
			function=dozer.daemon.call,
			args=(self.timer_handle_done, self.core),
		)
		self.timer.daemon = True
		self.timer.start()

	def timer_handle_done(self, core):
		if core is not self.core:
			self.log.debug('Ignoring stale tick.')
			return
		self.timer = None  # It exited cleanly, no need to cancel it.
		self.bridge.check()
		self.core.tick()
		self.timer_start_next()

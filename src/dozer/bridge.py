# dozer.bridge - system bus signal subscription
# Subscribes to the device service's and session managers' signals,
# and forwards them (normalized) to the core on the daemon's event loop
# thread.  The subscription owns its bus connection; when the
# connection is found dead, everything is torn down and set up again.

from dozer.backends import (
	CONSOLEKIT_MANAGER,
	CONSOLEKIT_PATH,
	LOGIND_MANAGER,
	LOGIND_PATH,
	PROPERTIES_INTERFACE,
	UPOWER_INTERFACE,
	UPOWER_PATH,
	UPOWER_SERVICE,
)
from dozer.events import Event
from dozer.logging import log

log = log.getChild('bridge')

class EventBridge:
	# Current bus connection, while subscribed.
	bus = None

	def __init__(self, connect, dispatch, core):
		# Callable returning a new system bus connection.
		self.connect = connect
		# Callable which runs a function on the event loop thread
		# (normally dozer.daemon.call).
		self.dispatch = dispatch
		self.core = core
		# SignalMatch objects of the current subscription.
		self.receivers = []

	# (handler, add_signal_receiver keyword arguments)
	def subscriptions(self):
		def upower(signal_name):
			return dict(
				signal_name=signal_name,
				dbus_interface=UPOWER_INTERFACE,
				bus_name=UPOWER_SERVICE,
				path=UPOWER_PATH,
			)
		return [
			(self.handle_device_added, upower('DeviceAdded')),
			(self.handle_device_removed, upower('DeviceRemoved')),
			# Older UPower versions
			(self.handle_changed, upower('Changed')),
			(self.handle_changed, upower('DeviceChanged')),
			(self.handle_sleep, upower('NotifySleep')),
			(self.handle_resume, upower('NotifyResume')),
			# Newer UPower versions report changes as property changes,
			# of either the service itself or one of its devices.
			(self.handle_properties_changed, dict(
				signal_name='PropertiesChanged',
				dbus_interface=PROPERTIES_INTERFACE,
				bus_name=UPOWER_SERVICE,
				path_keyword='path',
			)),
			(self.handle_prepare_for_sleep, dict(
				signal_name='PrepareForSleep',
				dbus_interface=LOGIND_MANAGER,
				path=LOGIND_PATH,
			)),
			(self.handle_prepare_for_sleep, dict(
				signal_name='PrepareForSleep',
				dbus_interface=CONSOLEKIT_MANAGER,
				path=CONSOLEKIT_PATH,
			)),
		]

	# Wrap a handler so that it runs on the event loop thread.
	def forward(self, handler):
		def receiver(*args, **kwargs):
			self.dispatch(handler, *args, **kwargs)
		return receiver

	# Connect and subscribe to everything, or to nothing at all.
	def subscribe(self):
		assert self.bus is None, 'Already subscribed'
		bus = self.connect()
		receivers = []
		try:
			for handler, kwargs in self.subscriptions():
				receivers.append(bus.add_signal_receiver(self.forward(handler), **kwargs))
		except Exception:
			for receiver in receivers:
				receiver.remove()
			bus.close()
			raise
		self.bus = bus
		self.receivers = receivers
		log.debug('Subscribed to %d signals.', len(receivers))

		# Pick up whatever happened while we were not listening.
		self.dispatch(self.handle_connected, bus)

	def unsubscribe(self):
		if self.bus is None:
			return
		bus = self.bus
		self.bus = None
		receivers = self.receivers
		self.receivers = []
		if bus.get_is_connected():
			for receiver in receivers:
				receiver.remove()
		bus.close()
		log.debug('Unsubscribed.')

	def is_connected(self):
		return self.bus is not None and bool(self.bus.get_is_connected())

	# Periodic liveness check.  Runs on the event loop thread.
	def check(self):
		if not self.is_connected():
			log.warning('System bus connection lost, reconnecting.')
			self.unsubscribe()
			try:
				self.subscribe()
			except Exception as e:
				log.warning('Failed to reconnect to the system bus (will retry): %s', e)
			return
		if not self.core.upower.is_available():
			self.core.devices.scan()

	# Handlers.  These run on the event loop thread.

	def handle_connected(self, bus):
		if bus is not self.bus:
			log.debug('Ignoring stale connection.')
			return
		self.core.set_bus(bus)
		self.core.rescan()
		self.core.take_sleep_lock()

	def handle_device_added(self, path):
		self.core.devices.device_added(str(path))

	def handle_device_removed(self, path):
		self.core.devices.device_removed(str(path))

	def handle_changed(self, *_args):
		self.core.state.poll()

	def handle_properties_changed(self, _interface, _changed, _invalidated, path=None):
		if path is not None and str(path) != UPOWER_PATH:
			self.core.devices.update(str(path))
		self.core.state.poll()

	def handle_prepare_for_sleep(self, sleeping):
		log.debug('System is %s sleep.', 'entering' if sleeping else 'exiting')
		self.core.events.emit(Event.PREPARE_FOR_SUSPEND, bool(sleeping))

	def handle_sleep(self, *_args):
		self.handle_prepare_for_sleep(True)

	def handle_resume(self, *_args):
		self.handle_prepare_for_sleep(False)

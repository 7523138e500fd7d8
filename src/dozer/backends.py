# dozer.backends - session manager and device service backends
# systemd-logind, ConsoleKit and UPower, as seen over the system bus.
# Every call has a bounded timeout, and an absent or failing service
# reads as "no" rather than raising.

import enum
import xml.etree.ElementTree as ElementTree

import dbus

from dozer.logging import log

PROPERTIES_INTERFACE = 'org.freedesktop.DBus.Properties'
INTROSPECTABLE_INTERFACE = 'org.freedesktop.DBus.Introspectable'

LOGIND_SERVICE = 'org.freedesktop.login1'
LOGIND_PATH = '/org/freedesktop/login1'
LOGIND_MANAGER = 'org.freedesktop.login1.Manager'

CONSOLEKIT_SERVICE = 'org.freedesktop.ConsoleKit'
CONSOLEKIT_PATH = '/org/freedesktop/ConsoleKit/Manager'
CONSOLEKIT_MANAGER = 'org.freedesktop.ConsoleKit.Manager'

UPOWER_SERVICE = 'org.freedesktop.UPower'
UPOWER_PATH = '/org/freedesktop/UPower'
UPOWER_INTERFACE = 'org.freedesktop.UPower'
UPOWER_DEVICE_INTERFACE = 'org.freedesktop.UPower.Device'

# Seconds to wait for any reply.
CALL_TIMEOUT = 5

NO_BACKEND = 'No backend available'

class Verb(enum.Enum):
	RESTART = 'restart'
	POWER_OFF = 'power-off'
	SUSPEND = 'suspend'
	HIBERNATE = 'hibernate'
	HYBRID_SLEEP = 'hybrid-sleep'


# Normalize a capability reply: logind answers 'yes' / 'no' / 'na' /
# 'challenge', older services answer with a boolean.
def to_bool(reply):
	if isinstance(reply, str):
		return reply == 'yes'
	return bool(reply)


class Backend:
	# All backends should define these.
	name = None
	service = None
	path = None
	interface = None

	# Verb -> method answering whether the verb is available.
	capabilities = {}

	# Verb -> method performing the verb.
	actions = {}

	# Arguments passed to action methods.
	action_args = ()

	def __init__(self, bus):
		self.bus = bus
		self.log = log.getChild('backends.' + self.name)

	def is_available(self):
		if self.bus is None:
			return False
		try:
			return bool(self.bus.name_has_owner(self.service))
		except dbus.exceptions.DBusException as e:
			self.log.debug('Failed to look up %s: %s', self.service, e)
			return False

	def call(self, method, *args, path=None, interface=None):
		obj = self.bus.get_object(self.service, path or self.path, introspect=False)
		method = obj.get_dbus_method(method, interface or self.interface)
		return method(*args, timeout=CALL_TIMEOUT)

	def can(self, verb):
		method = self.capabilities.get(verb)
		if method is None:
			return False
		try:
			return to_bool(self.call(method))
		except dbus.exceptions.DBusException as e:
			self.log.debug('%s failed: %s', method, e)
			return False

	# Returns '' on success, or the reason for the failure.
	def execute(self, verb):
		method = self.actions.get(verb)
		if method is None:
			return 'No such action: %s' % verb.value
		self.log.info('Calling %s.', method)
		try:
			self.call(method, *self.action_args)
		except dbus.exceptions.DBusException as e:
			return e.get_dbus_message() or str(e)
		return ''

	# Read a property of the main object.  None if unavailable.
	def get_property(self, name):
		if not self.is_available():
			return None
		try:
			return self.call('Get', self.interface, name, interface=PROPERTIES_INTERFACE)
		except dbus.exceptions.DBusException as e:
			self.log.debug('Failed to read %s: %s', name, e)
			return None

	def get_bool(self, name):
		return bool(self.get_property(name))


class LogindBackend(Backend):
	name = 'logind'
	service = LOGIND_SERVICE
	path = LOGIND_PATH
	interface = LOGIND_MANAGER

	capabilities = {
		Verb.RESTART: 'CanReboot',
		Verb.POWER_OFF: 'CanPowerOff',
		Verb.SUSPEND: 'CanSuspend',
		Verb.HIBERNATE: 'CanHibernate',
		Verb.HYBRID_SLEEP: 'CanHybridSleep',
	}
	actions = {
		Verb.RESTART: 'Reboot',
		Verb.POWER_OFF: 'PowerOff',
		Verb.SUSPEND: 'Suspend',
		Verb.HIBERNATE: 'Hibernate',
		Verb.HYBRID_SLEEP: 'HybridSleep',
	}
	# interactive = true: let polkit ask the user if needed.
	action_args = (True,)

	# Take an inhibitor lock.  Returns its file descriptor (closing it
	# releases the lock), or None if it could not be taken.
	def inhibit(self, what, why, mode='delay'):
		if not self.is_available():
			return None
		try:
			unix_fd = self.call('Inhibit', what, 'dozer', why, mode)
		except dbus.exceptions.DBusException as e:
			self.log.warning('Failed to take %s inhibitor lock: %s', what, e)
			return None
		return unix_fd.take()


class ConsoleKitBackend(LogindBackend):
	name = 'consolekit'
	service = CONSOLEKIT_SERVICE
	path = CONSOLEKIT_PATH
	interface = CONSOLEKIT_MANAGER


class UPowerBackend(Backend):
	'''The device service.  Can only answer whether suspend and hibernate
	are allowed; it does not perform actions.'''

	name = 'upower'
	service = UPOWER_SERVICE
	path = UPOWER_PATH
	interface = UPOWER_INTERFACE

	capabilities = {
		Verb.SUSPEND: 'SuspendAllowed',
		Verb.HIBERNATE: 'HibernateAllowed',
	}

	devices_path = UPOWER_PATH + '/devices'
	jobs_path = UPOWER_PATH + '/jobs'

	# Object paths of all devices.  Empty if the service cannot be
	# reached or its answer cannot be parsed.
	def enumerate_devices(self):
		if not self.is_available():
			return []
		try:
			data = self.call('Introspect', path=self.devices_path,
							 interface=INTROSPECTABLE_INTERFACE)
			root = ElementTree.fromstring(str(data))
		except dbus.exceptions.DBusException as e:
			self.log.warning('Failed to enumerate devices, check the upower service: %s', e)
			return []
		except ElementTree.ParseError as e:
			self.log.warning('Failed to parse device list: %s', e)
			return []
		return [
			self.devices_path + '/' + node.get('name')
			for node in root.findall('node')
			if node.get('name')
		]

	# All properties of a device.  Empty if unavailable.
	def device_properties(self, path):
		try:
			return self.call('GetAll', UPOWER_DEVICE_INTERFACE, path=path,
							 interface=PROPERTIES_INTERFACE)
		except dbus.exceptions.DBusException as e:
			self.log.debug('Failed to read %s: %s', path, e)
			return {}


class BackendSelector:
	'''Picks, on every call, the first available backend that knows the
	verb.  Availability is not remembered, as services come and go.'''

	def __init__(self, backends):
		self.backends = backends

	def query_capability(self, verb):
		for backend in self.backends:
			if verb in backend.capabilities and backend.is_available():
				return backend.can(verb)
		return False

	def execute_action(self, verb):
		for backend in self.backends:
			if verb in backend.actions and backend.is_available():
				return backend.execute(verb)
		return NO_BACKEND

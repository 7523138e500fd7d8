# Shared fakes for the dozer test suite.

import pytest

from dozer.config import Configurator
from dozer.events import Event, EventBus

UPOWER_DEVICES = '/org/freedesktop/UPower/devices'

class FakeDeviceService:
	'''Stands in for UPowerBackend as seen by the device registry.'''

	jobs_path = '/org/freedesktop/UPower/jobs'

	def __init__(self):
		# Path -> property dict
		self.props = {}

	def add(self, name, **props):
		path = UPOWER_DEVICES + '/' + name
		self.props[path] = props
		return path

	def add_battery(self, name, percentage, present=True, native_path=None, **props):
		return self.add(
			name,
			Type=2,
			IsPresent=present,
			NativePath=name if native_path is None else native_path,
			Percentage=percentage,
			**props,
		)

	def remove(self, path):
		del self.props[path]

	def enumerate_devices(self):
		return list(self.props)

	def device_properties(self, path):
		return dict(self.props.get(path, {}))


class Recorder:
	'''Records every event emitted on a bus.'''

	def __init__(self, events):
		self.emitted = []
		for event in Event:
			events.connect(event, self.make_handler(event))

	def make_handler(self, event):
		def handler(*args):
			self.emitted.append((event,) + args)
		return handler

	def count(self, event):
		return sum(1 for emitted in self.emitted if emitted[0] == event)

	def clear(self):
		self.emitted = []


class FakeDBusObject:
	def __init__(self, methods):
		# (interface, member) -> return value, exception or callable
		self.methods = methods
		self.calls = []

	def get_dbus_method(self, member, dbus_interface=None):
		def method(*args, timeout=None):
			import dbus.exceptions
			assert timeout is not None, 'Calls must be bounded'
			self.calls.append((dbus_interface, member) + args)
			key = (dbus_interface, member)
			if key not in self.methods:
				raise dbus.exceptions.DBusException(
					'No such method %s.%s' % key,
					name='org.freedesktop.DBus.Error.UnknownMethod')
			result = self.methods[key]
			if isinstance(result, Exception):
				raise result
			if callable(result):
				return result(*args)
			return result
		return method


class FakeBus:
	'''A system bus with a fixed set of services.'''

	def __init__(self):
		# (service, path) -> FakeDBusObject
		self.objects = {}

	def add(self, service, path, methods):
		self.objects[(service, path)] = FakeDBusObject(methods)
		return self.objects[(service, path)]

	def name_has_owner(self, name):
		return any(service == name for service, _path in self.objects)

	def get_object(self, bus_name, object_path, introspect=True):
		import dbus.exceptions
		if (bus_name, object_path) not in self.objects:
			raise dbus.exceptions.DBusException(
				'No object %s at %s' % (object_path, bus_name),
				name='org.freedesktop.DBus.Error.ServiceUnknown')
		return self.objects[(bus_name, object_path)]


# Reply of logind's Inhibit().
class FakeUnixFd:
	def __init__(self, fd):
		self.fd = fd

	def take(self):
		return self.fd


# Property getter for FakeBus: ('org.freedesktop.DBus.Properties', 'Get')
def properties_get(props):
	def get(_interface, name):
		import dbus.exceptions
		if name not in props:
			raise dbus.exceptions.DBusException('No such property %s' % name)
		return props[name]
	return get


class FakeDisplays:
	def __init__(self, external=False):
		self.external = external
		self.refreshed = 0

	def refresh(self):
		self.refreshed += 1

	def external_connected(self):
		return self.external


class FakeIdleMeter:
	def __init__(self, minutes=0):
		self.minutes = minutes

	def idle_minutes(self):
		return self.minutes

	def close(self):
		pass


@pytest.fixture
def events():
	return EventBus()

@pytest.fixture
def recorder(events):
	return Recorder(events)

@pytest.fixture
def settings():
	return Configurator()

@pytest.fixture
def service():
	return FakeDeviceService()

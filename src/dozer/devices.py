# dozer.devices - power supply device registry
# Mirrors the batteries and line power supplies known to the device
# service (UPower), and aggregates their state.

from dozer.events import Event
from dozer.logging import log

log = log.getChild('devices')

# Values of the device service's Type property.
TYPE_UNKNOWN = 0
TYPE_LINE_POWER = 1
TYPE_BATTERY = 2

class Device:
	# Object path, as assigned by the device service.
	path = None

	type = TYPE_UNKNOWN
	is_present = False

	# Kernel path of the supply.  Empty for synthetic devices (such as
	# the service's aggregate "display device").
	native_path = ''

	vendor = ''
	model = ''

	# Line power only.
	online = False

	# Batteries only.  Percentage is 0-100, times are in seconds with
	# 0 meaning "unknown".
	percentage = 0.0
	time_to_empty = 0
	time_to_full = 0

	def __init__(self, path, service):
		self.path = path
		self.service = service

	@property
	def is_battery(self):
		return self.type == TYPE_BATTERY

	# A battery which should count towards the aggregates.
	@property
	def is_valid_battery(self):
		return self.is_battery and self.is_present and self.native_path != ''

	def update(self):
		props = self.service.device_properties(self.path)
		if not props:
			return
		self.type = int(props.get('Type', self.type))
		self.native_path = str(props.get('NativePath', self.native_path))
		self.vendor = str(props.get('Vendor', self.vendor))
		self.model = str(props.get('Model', self.model))
		self.online = bool(props.get('Online', self.online))
		self.apply_battery(props)

	def update_battery(self):
		props = self.service.device_properties(self.path)
		if props:
			self.apply_battery(props)

	def apply_battery(self, props):
		self.is_present = bool(props.get('IsPresent', self.is_present))
		percentage = float(props.get('Percentage', self.percentage))
		self.percentage = min(max(percentage, 0.0), 100.0)
		self.time_to_empty = max(int(props.get('TimeToEmpty', self.time_to_empty)), 0)
		self.time_to_full = max(int(props.get('TimeToFull', self.time_to_full)), 0)

	def __str__(self):
		if self.is_battery:
			return '%s: battery at %.1f%% (present: %s)' % (
				self.path, self.percentage, self.is_present)
		return '%s: type %d, online: %s' % (self.path, self.type, self.online)


class DeviceRegistry:
	'''The set of known devices, keyed by object path.

	`service` is the device service backend (see
	dozer.backends.UPowerBackend), `on_battery` a callable returning
	the current power source.'''

	def __init__(self, service, events, on_battery):
		self.service = service
		self.events = events
		self.on_battery = on_battery
		self.devices = {}

	# Paths below the service's job namespace are not devices.
	def is_job(self, path):
		return path.startswith(self.service.jobs_path)

	# Pick up devices we do not know about yet.  Known devices keep
	# their state; removal only happens through device_removed.
	def scan(self):
		for path in self.service.enumerate_devices():
			if path in self.devices or self.is_job(path):
				continue
			log.debug('New device: %s', path)
			device = Device(path, self.service)
			device.update()
			self.devices[path] = device
		self.events.emit(Event.DEVICES_UPDATED)

	def device_added(self, path):
		if self.is_job(path):
			return
		self.events.emit(Event.DEVICE_ADDED, path)
		self.scan()

	def device_removed(self, path):
		if self.is_job(path):
			return
		if path in self.devices:
			# Stale notification; the device is still there.
			if path in self.service.enumerate_devices():
				return
			log.debug('Device removed: %s', path)
			del self.devices[path]
			self.events.emit(Event.DEVICE_REMOVED, path)
		self.scan()

	# Refresh one device (or all of them) from the service.
	def update(self, path=None):
		if path is None:
			for device in self.devices.values():
				device.update()
		elif path in self.devices:
			self.devices[path].update()
		else:
			return
		self.events.emit(Event.DEVICES_UPDATED)

	# Refresh battery levels.  Skipped on AC, where the level does not
	# influence any decision.
	def update_battery(self):
		if not self.on_battery():
			return
		for device in self.devices.values():
			if device.is_battery:
				device.update_battery()

	def batteries(self):
		return [device for device in self.devices.values() if device.is_valid_battery]

	# Average charge of all batteries, 0 without batteries.
	def battery_left(self):
		self.update_battery()
		batteries = self.batteries()
		if not batteries:
			return 0.0
		return sum(device.percentage for device in batteries) / len(batteries)

	def has_battery(self):
		return any(device.is_battery for device in self.devices.values())

	def time_to_empty(self):
		self.update_battery()
		return sum(device.time_to_empty for device in self.batteries())

	def time_to_full(self):
		self.update_battery()
		return sum(device.time_to_full for device in self.batteries())

	def clear(self):
		self.devices.clear()

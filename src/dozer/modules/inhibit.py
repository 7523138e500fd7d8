# dozer.modules.inhibit - optional on_start module
# Provides the org.freedesktop.ScreenSaver and
# org.freedesktop.PowerManagement inhibit interfaces on the session
# bus, so that video players and the like can keep the screen on or
# the machine awake.  Inhibitors are dropped when their owner leaves
# the bus.

import dbus
import dbus.service

import dozer
import dozer.daemon
from dozer import inhibitors
from dozer.events import Event

SS_SERVICE = 'org.freedesktop.ScreenSaver'
SS_INTERFACE = 'org.freedesktop.ScreenSaver'
SS_PATHS = ('/ScreenSaver', '/org/freedesktop/ScreenSaver')

PM_SERVICE = 'org.freedesktop.PowerManagement'
PM_INTERFACE = 'org.freedesktop.PowerManagement.Inhibit'
PM_PATH = '/org/freedesktop/PowerManagement/Inhibit'

# D-Bus objects.  Methods are called on the GLib thread, and forward
# to the module on the event loop thread.

class ScreenSaverObject(dbus.service.Object):
	kind = inhibitors.SCREENSAVER

	def __init__(self, module, bus, path):
		super().__init__(bus, path)
		self.module = module

	@dbus.service.method(SS_INTERFACE, in_signature='ss', out_signature='u',
						 sender_keyword='sender', async_callbacks=('reply', 'error'))
	def Inhibit(self, application, reason, sender=None, reply=None, error=None):
		dozer.daemon.call(self.module.inhibit, self.kind, str(sender), str(application), str(reason),
						  reply, error)

	@dbus.service.method(SS_INTERFACE, in_signature='u', sender_keyword='sender')
	def UnInhibit(self, cookie, sender=None):
		dozer.daemon.call(self.module.uninhibit, self.kind, str(sender), int(cookie))


class PowerManagementObject(dbus.service.Object):
	kind = inhibitors.POWER_MANAGEMENT

	def __init__(self, module, bus, path):
		super().__init__(bus, path)
		self.module = module

	@dbus.service.method(PM_INTERFACE, in_signature='ss', out_signature='u',
						 sender_keyword='sender', async_callbacks=('reply', 'error'))
	def Inhibit(self, application, reason, sender=None, reply=None, error=None):
		dozer.daemon.call(self.module.inhibit, self.kind, str(sender), str(application), str(reason),
						  reply, error)

	@dbus.service.method(PM_INTERFACE, in_signature='u', sender_keyword='sender')
	def UnInhibit(self, cookie, sender=None):
		dozer.daemon.call(self.module.uninhibit, self.kind, str(sender), int(cookie))

	@dbus.service.method(PM_INTERFACE, out_signature='b', async_callbacks=('reply', 'error'))
	def HasInhibit(self, reply=None, error=None):
		dozer.daemon.call(self.module.get_has_inhibit, reply)

	@dbus.service.signal(PM_INTERFACE, signature='b')
	def HasInhibitChanged(self, has_inhibit):
		pass


class InhibitModule(dozer.module.Module):
	name = 'inhibit'

	DBUS_SPEC = ('dbus',)
	POWER_SPEC = ('power',)

	def __init__(self, screensaver=True, power_management=True):
		super().__init__()

		# Parameters:

		# Which of the two services to provide.
		self.enable_ss = screensaver
		self.enable_pm = power_management

		# Private state:

		self.dbus = dozer.module.get(self.DBUS_SPEC)
		self.power = dozer.module.get(self.POWER_SPEC)
		self.bus = None

		# BusName objects of the well-known names we own.
		self.bus_names = []

		# Exported D-Bus objects.
		self.objects = []

		# Cookie -> (kind, unique bus name of the owner)
		self.owners = {}

		# Unique bus name -> name owner watch
		self.watches = {}

		# Last value signalled with HasInhibitChanged.
		self.has_inhibit = False

	def get_dependencies(self):
		return [self.DBUS_SPEC, self.POWER_SPEC]

	def start(self):
		try:
			self.bus = self.dbus.get_session_bus()
		except dbus.exceptions.DBusException as e:
			self.log.warning('Cannot connect to the session bus: %s', e)
			return

		if self.enable_ss:
			self.export(SS_SERVICE, lambda: [ScreenSaverObject(self, self.bus, path) for path in SS_PATHS])
		if self.enable_pm:
			self.export(PM_SERVICE, lambda: [PowerManagementObject(self, self.bus, PM_PATH)])

		self.power.core.events.connect(Event.INHIBITORS_UPDATED, self.handle_inhibitors_updated)

	def stop(self):
		if self.bus is None:
			return

		self.power.core.events.disconnect(Event.INHIBITORS_UPDATED, self.handle_inhibitors_updated)

		for obj in self.objects:
			obj.remove_from_connection()
		self.objects = []
		# Dropping the BusName objects releases the names.
		self.bus_names = []

		for watch in self.watches.values():
			watch.cancel()
		self.watches = {}

		# Our clients can no longer release their inhibitors.
		for cookie, (kind, _sender) in self.owners.items():
			self.power.core.uninhibit(kind, cookie)
		self.owners = {}

		self.bus = None

	def export(self, service, make_objects):
		try:
			bus_name = dbus.service.BusName(service, self.bus, do_not_queue=True)
		except dbus.exceptions.NameExistsException:
			self.log.warning('%s is already provided by another program.', service)
			return
		self.bus_names.append(bus_name)
		self.objects.extend(make_objects())
		self.log.info('Enabled %s.', service)

	def pm_objects(self):
		return [obj for obj in self.objects if isinstance(obj, PowerManagementObject)]

	# Runs in the main thread:
	def inhibit(self, kind, sender, application, reason, reply, error):
		self.log.debug('%s requests a %s inhibitor: %s', application, kind, reason)
		core = self.power.core
		try:
			cookie = core.cookies.allocate()
		except dozer.UserError as e:
			self.dbus.glib.run_async(error, dbus.exceptions.DBusException(str(e)))
			return
		core.inhibit(kind, cookie, application)
		self.owners[cookie] = (kind, sender)
		self.watch(sender)
		self.dbus.glib.run_async(reply, cookie)

	# Runs in the main thread:
	def uninhibit(self, kind, sender, cookie):
		if self.owners.get(cookie) != (kind, sender):
			self.log.debug('Ignoring release of %s inhibitor %d not held by %s.', kind, cookie, sender)
			return
		del self.owners[cookie]
		self.power.core.uninhibit(kind, cookie)
		self.unwatch_if_unused(sender)

	# Runs in the main thread:
	def get_has_inhibit(self, reply):
		self.dbus.glib.run_async(reply, len(self.power.core.pm_inhibitors) > 0)

	def watch(self, sender):
		if sender in self.watches:
			return
		def callback(owner):
			dozer.daemon.call(self.handle_owner_changed, sender, str(owner))
		self.watches[sender] = self.bus.watch_name_owner(sender, callback)

	def unwatch_if_unused(self, sender):
		if any(owner == sender for _kind, owner in self.owners.values()):
			return
		watch = self.watches.pop(sender, None)
		if watch is not None:
			watch.cancel()

	# Runs in the main thread:
	def handle_owner_changed(self, sender, owner):
		if owner:
			return
		self.log.debug('%s left the bus, releasing its inhibitors.', sender)
		for cookie, (kind, cookie_sender) in list(self.owners.items()):
			if cookie_sender == sender:
				del self.owners[cookie]
				self.power.core.uninhibit(kind, cookie)
		self.unwatch_if_unused(sender)

	# Runs in the main thread:
	def handle_inhibitors_updated(self, kind):
		if kind != inhibitors.POWER_MANAGEMENT:
			return
		has_inhibit = len(self.power.core.pm_inhibitors) > 0
		if has_inhibit == self.has_inhibit:
			return
		self.has_inhibit = has_inhibit
		for obj in self.pm_objects():
			self.dbus.glib.run_async(obj.HasInhibitChanged, has_inhibit)

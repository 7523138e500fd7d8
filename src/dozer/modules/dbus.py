# dozer.modules.dbus - D-Bus interop
# Hands out bus connections dispatched by the GLib main loop.

import dbus
import dbus.mainloop.glib
from dbus.mainloop.glib import DBusGMainLoop

import dozer

class DBusModule(dozer.module.Module):
	name = 'dbus'

	GLIB_SPEC = ('glib',)

	def __init__(self):
		super().__init__()

		self.glib = dozer.module.get(self.GLIB_SPEC)
		self.dbus_mainloop = None
		self.session_bus = None

	def get_dependencies(self):
		return [self.GLIB_SPEC]

	def start(self):
		# Connections are used both from the GLib thread and ours.
		dbus.mainloop.glib.threads_init()
		self.dbus_mainloop = DBusGMainLoop()

	def stop(self):
		if self.session_bus is not None:
			self.session_bus.close()
			self.session_bus = None
		self.dbus_mainloop = None

	# A new, private system bus connection.  It does not take the
	# process down when the bus goes away; see dozer.bridge.
	def connect_system(self):
		bus = dbus.SystemBus(mainloop=self.dbus_mainloop, private=True)
		bus.set_exit_on_disconnect(False)
		return bus

	# The session bus connection, shared by session services.
	def get_session_bus(self):
		if self.session_bus is None:
			self.session_bus = dbus.SessionBus(mainloop=self.dbus_mainloop, private=True)
			self.session_bus.set_exit_on_disconnect(False)
		return self.session_bus

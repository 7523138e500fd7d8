# dozer.modules.glib - GLib main loop
# Runs a GLib MainLoop in a thread.  D-Bus signals and method calls
# are received on this thread.

import threading

from gi.repository import GLib

import dozer

class GLibModule(dozer.module.Module):
	name = 'glib'

	def __init__(self):
		super().__init__()
		self.mainloop = None
		self.glib_thread = None

	def start(self):
		self.mainloop = GLib.MainLoop()
		self.glib_thread = threading.Thread(target=self.glib_thread_func, name='glib')
		self.glib_thread.start()

	def stop(self):
		self.run_async(self.mainloop.quit)
		self.glib_thread.join()
		self.mainloop = None
		self.glib_thread = None

	# Run a function on the GLib main loop thread, discarding the
	# return value.
	def run_async(self, func, *args):
		# The main loop runs on the default GLib context, which is
		# what idle_add attaches to.  There is at most one instance of
		# this module.
		def run():
			func(*args)
			return GLib.SOURCE_REMOVE
		GLib.idle_add(run)

	def glib_thread_func(self):
		self.mainloop.run()

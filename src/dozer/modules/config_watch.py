# dozer.modules.config_watch - optional on_start module
# Watches the configuration file, and reloads the configuration when
# it changes.

import os
import threading

import inotify_simple

import dozer
import dozer.config
import dozer.daemon

class ConfigWatchModule(dozer.module.Module):
	name = 'config_watch'

	def __init__(self, config_file):
		super().__init__()
		self.config_file = config_file

		# inotify object and watch descriptor
		self.inotify = None
		self.inotify_wd = None

		# Reader thread
		self.watch_thread = None

	def start(self):
		# Watch the directory, as editors tend to replace files rather
		# than write to them.
		self.inotify = inotify_simple.INotify()
		flags = (
			inotify_simple.flags.CLOSE_WRITE |
			inotify_simple.flags.MOVED_TO |
			inotify_simple.flags.CREATE |
			inotify_simple.flags.DELETE
		)
		self.inotify_wd = self.inotify.add_watch(os.path.dirname(self.config_file), flags)

		self.watch_thread = INotifyThread(self)
		self.watch_thread.start()

	def stop(self):
		if self.watch_thread is not None:
			self.watch_thread.stop = True
			# This will generate an event, which will cause the thread
			# to exit.
			self.inotify.rm_watch(self.inotify_wd)

			self.watch_thread.join()
			self.watch_thread = None

			self.inotify.close()
			self.inotify = None

			self.log.debug('Done.')

	def config_watch_handle_event(self, thread, names):
		if thread is not self.watch_thread:
			self.log.debug('Ignoring stale inotify event')
			return
		if os.path.basename(self.config_file) not in names:
			return
		self.log.info('Configuration file changed.')
		dozer.config.reload()


class INotifyThread(threading.Thread):
	stop = False

	def __init__(self, module):
		super().__init__(name='config_watch')
		self.module = module

	def run(self):
		while True:
			events = self.module.inotify.read()
			if self.stop:
				return
			names = {event.name for event in events}
			dozer.daemon.call(self.module.config_watch_handle_event, self, names)

# dozer.xidle - user idle time measurement
# Reads the X server's idle counter through the MIT-SCREEN-SAVER
# extension (which python-xlib loads automatically when the server
# supports it).

import contextlib

import Xlib.display
import Xlib.error

from dozer.logging import log

log = log.getChild('xidle')

EXTENSION = 'MIT-SCREEN-SAVER'

class IdleMeter:
	# Open Xlib display, or None.
	display = None

	def __init__(self, display_name=None):
		self.display_name = display_name

	def open(self):
		display = Xlib.display.Display(self.display_name)
		if not display.has_extension(EXTENSION):
			display.close()
			log.debug('The X server does not support %s; idle time is unknown.', EXTENSION)
			return None
		return display

	# Milliseconds since the last user input.  0 if unknown.
	def idle_ms(self):
		try:
			if self.display is None:
				self.display = self.open()
				if self.display is None:
					return 0
			info = self.display.screen().root.screensaver_query_info()
			return info.idle
		except (Xlib.error.DisplayError, Xlib.error.ConnectionClosedError, Xlib.error.XError) as e:
			log.debug('Failed to query idle time: %s', e)
			self.close()
			return 0

	def idle_minutes(self):
		return self.idle_ms() // (60 * 1000)

	def close(self):
		if self.display is not None:
			with contextlib.suppress(Xlib.error.ConnectionClosedError):
				self.display.close()
			self.display = None

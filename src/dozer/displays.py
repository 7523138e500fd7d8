# dozer.displays - connected monitor detection
# Used to ignore the lid when working on an external monitor.  Outputs
# are listed through the X RandR extension.

import os

import Xlib.display
import Xlib.error
from Xlib.ext import randr

from dozer.logging import log

log = log.getChild('displays')

# Name prefixes of outputs built into a laptop.
INTERNAL_PREFIXES = ('LVDS', 'eDP', 'DSI')

# Outputs with this prefix are not real monitors.
VIRTUAL_PREFIX = 'VIRTUAL'

# Return a map of output name -> connected.
def list_outputs(display_name=None):
	try:
		display = Xlib.display.Display(display_name)
	except (Xlib.error.DisplayError, Xlib.error.ConnectionClosedError) as e:
		log.debug('Cannot open display %r: %s', display_name or os.getenv('DISPLAY'), e)
		return {}

	monitors = {}
	try:
		if not display.has_extension('RANDR'):
			log.debug('RandR is not available.')
			return {}
		resources = display.screen().root.xrandr_get_screen_resources()
		for output in resources.outputs:
			info = display.xrandr_get_output_info(output, resources.config_timestamp)
			name = info.name
			if isinstance(name, bytes):
				name = name.decode()
			monitors[name] = info.connection == randr.Connected
	except (Xlib.error.XError, Xlib.error.ConnectionClosedError) as e:
		log.warning('Failed to list outputs: %s', e)
	finally:
		display.close()
	return monitors


def find_internal(monitors):
	for name in monitors:
		if name.startswith(INTERNAL_PREFIXES):
			return name
	return None


class Displays:
	# Output name -> connected, as of the last refresh.
	monitors = {}

	# Name of the built-in output, once known.
	internal = None

	def __init__(self, list_outputs=list_outputs):
		self.list_outputs = list_outputs
		self.monitors = {}

	def refresh(self):
		self.monitors = self.list_outputs()
		if self.internal is None:
			self.internal = find_internal(self.monitors)
			if self.internal is not None:
				log.debug('Internal monitor is %s.', self.internal)

	def internal_connected(self):
		return self.monitors.get(self.internal, False)

	def external_connected(self):
		return any(
			connected
			for name, connected in self.monitors.items()
			if name != self.internal and not name.startswith(VIRTUAL_PREFIX)
		)

	def __str__(self):
		return 'internal: %s, monitors: %r' % (self.internal, self.monitors)

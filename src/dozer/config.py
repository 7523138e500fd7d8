# dozer.config - loads, evaluates, and manages the user's configuration
# The configuration is a Python file defining a function, config(c),
# which sets the attributes of the Configurator passed to it, e.g.:
#
#   def config(c):
#       c.suspend_battery_timeout = 10
#       c.lid_ac_action = 'none'

import importlib.util
import os
import sys

import dozer
import dozer.module
from dozer.logging import log
from dozer.policy import Action

# The user config module.
module = None

# Path of the loaded configuration file, if any.
config_file = None

# Settings holding an action name.
ACTION_SETTINGS = (
	'suspend_battery_action',
	'suspend_ac_action',
	'lid_battery_action',
	'lid_ac_action',
	'critical_action',
)

# Settings holding a non-negative number.
NUMBER_SETTINGS = (
	'suspend_battery_timeout',
	'suspend_ac_timeout',
	'critical_battery',
	'tick_interval',
)

class Configurator:
	def __init__(self):
		self.reset()

	def reset(self):
		# Minutes of user idle time before the idle action runs, on
		# battery and on AC.  0 disables the idle action.
		self.suspend_battery_timeout = 15
		self.suspend_ac_timeout = 0
		self.suspend_battery_action = Action.SLEEP
		self.suspend_ac_action = Action.NONE

		# What to do when the lid is closed.
		self.lid_battery_action = Action.SLEEP
		self.lid_ac_action = Action.LOCK
		self.disable_lid_on_external_monitors = True

		# Battery percentage at or below which critical_action runs.
		self.critical_battery = 10
		self.critical_action = Action.HIBERNATE

		# Lock the screen when the system is about to sleep.
		self.lock_on_sleep = True
		self.lock_command = ['xscreensaver-command', '-lock']

		# Provide the org.freedesktop.ScreenSaver and
		# org.freedesktop.PowerManagement inhibit services.
		self.desktop_ss = True
		self.desktop_pm = True

		# Reload the configuration when the file changes.
		self.watch_config = True

		# Seconds between idle checks.  Timeouts count in ticks, so
		# they are in minutes only with the default.
		self.tick_interval = 60

	# Re-evaluate the configuration and update our state to match.
	def evaluate(self):
		log.debug('Reconfiguring.')

		# Reset settings before (re-)evaluating the user configuration.
		self.reset()

		if not module:
			log.debug('No configuration, using defaults.')
			return

		# Evaluate the user-defined configuration function.
		try:
			module.config(self)
			self.validate()
		except Exception:
			# Do not run with a half-applied configuration.
			self.reset()
			raise

	def validate(self):
		for name in ACTION_SETTINGS:
			value = getattr(self, name)
			try:
				setattr(self, name, Action(value))
			except ValueError:
				raise dozer.UserError('Invalid %s: %r (must be one of %s)' % (
					name, value, ', '.join(a.value for a in Action)))
		for name in NUMBER_SETTINGS:
			value = getattr(self, name)
			if not isinstance(value, (int, float)) or value < 0:
				raise dozer.UserError('Invalid %s: %r (must be a non-negative number)' % (name, value))
		if self.tick_interval == 0:
			raise dozer.UserError('Invalid tick_interval: must be positive')
		if isinstance(self.lock_command, str):
			self.lock_command = [self.lock_command]

	def selector(self, wanted_modules):
		'''Module selector which applies the user's configuration.'''

		self.evaluate()

		if self.desktop_ss or self.desktop_pm:
			wanted_modules.append(('inhibit', self.desktop_ss, self.desktop_pm))

		if self.watch_config and config_file is not None:
			wanted_modules.append(('config_watch', config_file))

	def print_status(self, f):
		'''Used in 'dozer status' command.'''
		f.write(b'Configuration: %s\n' % (config_file or 'defaults').encode())
		for name in ACTION_SETTINGS + NUMBER_SETTINGS:
			value = getattr(self, name)
			if isinstance(value, Action):
				value = value.value
			f.write(b'- %s: %s\n' % (name.encode(), str(value).encode()))


configurator = Configurator()
dozer.module.selectors['20-config'] = configurator.selector

def get_config_files():
	config_dirs = os.getenv('XDG_CONFIG_DIRS', '/etc/xdg').split(':')
	config_dirs = [os.getenv('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))] + config_dirs
	return [d + '/dozer/config.py' for d in config_dirs]

# (Re-)Load the configuration file.
def load():
	global module, config_file

	config_files = get_config_files()
	for path in config_files:
		if os.path.exists(path):
			log.debug('Loading configuration from %r.', path)

			# https://docs.python.org/3/library/importlib.html#importing-a-source-file-directly
			module_name = 'dozer_user_config'
			spec = importlib.util.spec_from_file_location(module_name, path)
			module = importlib.util.module_from_spec(spec)
			sys.modules[module_name] = module
			spec.loader.exec_module(module)
			config_file = path
			return

	log.info('No configuration file found, using defaults.')
	log.info('Create %r to change them.', config_files[0])
	module = None
	config_file = None

# Reload the configuration file and re-apply the configuration.
def reload():
	log.info('Reloading configuration.')
	load()
	dozer.module.update()

# Re-evaluate the configuration and update our state to match.
def reconfigure():
	dozer.module.update()

# dozer.__init__ - core definitions and entry point
# Watches batteries, the lid and user activity, and suspends,
# hibernates or shuts down the machine according to the user's
# configuration.

import json
import os
import sys

# -----------------------------------------------------------------------------
# External globals - made available to the configuration and external processes

# This session's runtime directory.  Holds the PID file and socket.
run_dir = os.environ.setdefault(
	'DOZER_RUN_DIR',
	os.getenv(
		'XDG_RUNTIME_DIR',
		'/tmp/' + str(os.getuid())
	) + '/dozer'
)

# -----------------------------------------------------------------------------
# Exceptions

# Represents an expected failure mode, which is unlikely to be due to
# a bug in dozer.  In this case, we do not need to print an exception
# stack trace; just print the error message and quit.
class UserError(Exception):
	pass

# -----------------------------------------------------------------------------
# Import dozer modules
# Placed after the declarations above, so that they can be used by the
# imported modules.

import dozer.config
import dozer.daemon
import dozer.module
import dozer.server
from dozer.logging import log

# -----------------------------------------------------------------------------
# Core functionality: run core modules

def core_selector(wanted_modules):
	wanted_modules.extend([
		# Receives commands from other processes.
		('server', ),

		# The power manager proper.
		('power', ),
	])

dozer.module.selectors['10-core'] = core_selector

# -----------------------------------------------------------------------------
# Entry point

COMMANDS = ('restart', 'power-off', 'suspend', 'hibernate', 'hybrid-sleep',
			'lock-screen', 'update-config')

def main():
	args = sys.argv[1:]

	help_text = '''
Usage: dozer COMMAND

Commands:
  help           Print this message.
  start          Start the dozer daemon.
  stop           Stop the dozer daemon.
  status         Print the current status.
  reload         Reload the configuration.
  query NAME     Print the value of NAME (e.g. on-battery, battery-left).
  inhibitors     List applications holding inhibitors.
  restart        Restart the machine.
  power-off      Power off the machine.
  suspend        Suspend the machine.
  hibernate      Hibernate the machine.
  hybrid-sleep   Suspend and hibernate the machine.
  lock-screen    Lock the screen now.
  update-config  Ask the daemon to re-read its configuration.
'''

	if not args:
		sys.stderr.write(help_text)
		return 2

	try:
		os.makedirs(run_dir, exist_ok=True)

		match args[0]:
			case 'help':
				sys.stdout.write(help_text)

			case 'start':
				dozer.config.load()
				return dozer.daemon.start()

			case 'stop':
				dozer.daemon.stop_remote()

			case 'reload':
				dozer.server.notify(*args)

			case 'status' | 'inhibitors':
				sys.stdout.buffer.write(dozer.server.query(*args))

			case 'query':
				if len(args) != 2:
					raise UserError('Usage: dozer query NAME')
				print(json.dumps(dozer.server.request(*args)))

			case command if command in COMMANDS:
				dozer.server.request(*args)

			case _:
				log.critical('Unknown command: %r', args[0])
				return 1

		return 0

	except UserError as e:
		log.critical('Fatal error: %s', e)
		return 1

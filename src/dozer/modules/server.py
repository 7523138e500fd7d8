# dozer.modules.server - core on_start module
# Runs a UNIX socket server and receives commands.
# Used by the dozer CLI, and by anything else that wants to query the
# power state or request power actions.

import contextlib
import io
import json
import os
import socketserver
import threading

import dozer
import dozer.config
import dozer.server
from dozer import inhibitors
from dozer.policy import describe_battery

class ServerModule(dozer.module.Module):
	name = 'server'

	POWER_SPEC = ('power',)

	def __init__(self):
		super().__init__()

		self.power = dozer.module.get(self.POWER_SPEC)

		# SocketServer instance.
		self.server = None

		# Thread running the server accept loop.
		self.server_thread = None

	def get_dependencies(self):
		return [self.POWER_SPEC]

	def start(self):
		# Remove stale socket
		with contextlib.suppress(FileNotFoundError):
			os.remove(dozer.server.path)
			self.log.debug('Removed stale socket: %r', dozer.server.path)

		self.server = SocketServer(self)

		self.server_thread = threading.Thread(target=self.server_thread_func, name='server')
		self.server_thread.start()

	def stop(self):
		# The blocking accept cannot be interrupted, so wake it up with
		# a dummy command after asking the loop to stop.
		self.server.stopping = True
		self.server = None
		dozer.server.notify('server-shutdown-ping')

		self.server_thread.join()
		self.server_thread = None

	def server_thread_func(self):
		server = self.server

		while not server.stopping:
			server.handle_request()
		server.server_close()
		self.log.debug('Stopping server thread.')

	def server_reader(self, handler):
		command_str = handler.rfile.readline()

		if not command_str.endswith(b'\n'):
			self.log.warning('Received unterminated command: %r', command_str)
			return
		command_str = command_str[:-1]

		self.log.trace('Got string: %r', command_str)
		try:
			command = json.loads(command_str)
		except ValueError:
			self.log.warning('Received malformed command: %r', command_str)
			return

		if command == ['server-shutdown-ping']:
			return  # This was sent just to wake up the accept loop.

		done_event = threading.Event()
		dozer.daemon.call(self.server_run_command, handler, done_event, *command)

		# Wait until the command is processed, to avoid the connection
		# getting closed early.
		done_event.wait()

	# Handle one command received from the socket.
	# Runs in the main thread.
	def server_run_command(self, handler, done_event, *args):
		try:
			self.log.debug('Got command: %r', args)
			handler.wfile.write(self.run_command(*args))
		finally:
			done_event.set()

	# Returns the reply to send.
	def run_command(self, *args):
		core = self.power.core
		match args:
			case ('ping',):
				return b'pong\n'
			case ('status',):
				return self.status(core)
			case ('stop',):
				dozer.daemon.stop()
				return b''
			case ('reload',):
				dozer.config.reload()
				return b''
			case ('query', name):
				if name not in core.QUERIES:
					return reply(error='Unknown query: %s' % name)
				return reply(value=core.query(name))
			case (name,) if name in core.COMMANDS:
				if name == 'lock-screen':
					self.log.security('Locking the screen due to user request.')
				return reply(error=core.command(name))
			case ('inhibitors',):
				return b''.join(
					b'%s: %s\n' % (kind.encode(), application.encode())
					for kind in inhibitors.KINDS
					for application in core.ledger(kind).applications()
				)
			case ('inhibit', kind, cookie, application) if kind in inhibitors.KINDS:
				number = parse_cookie(cookie)
				if number is None:
					return reply(error='Invalid cookie: %s' % (cookie,))
				core.inhibit(kind, number, application)
				return reply(error='')
			case ('uninhibit', kind, cookie) if kind in inhibitors.KINDS:
				number = parse_cookie(cookie)
				if number is None:
					return reply(error='Invalid cookie: %s' % (cookie,))
				if not core.uninhibit(kind, number):
					return reply(error='No such inhibitor: %s' % cookie)
				return reply(error='')
			case _:
				self.log.warning('Ignoring unknown daemon command: %r', args)
				return reply(error='Unknown command')

	def status(self, core):
		lines = [
			'State: %s' % core,
			'Battery: %s' % describe_battery(core.battery_left(), core.on_battery()),
			'Displays: %s' % core.displays,
			'Screen saver inhibitors: %s' % ', '.join(core.screensaver_inhibitors()),
			'Power management inhibitors: %s' % ', '.join(core.power_management_inhibitors()),
			'Running modules:',
		] + [
			'- %r' % (m,) for m in dozer.module.running_modules
		] + [
			'Devices:',
		] + [
			'- %s' % device for device in core.devices.devices.values()
		]
		s = ''.join(line + '\n' for line in lines).encode()
		f = io.BytesIO()
		f.write(s)
		dozer.config.configurator.print_status(f)
		return f.getvalue()


def reply(**kwargs):
	return (json.dumps(kwargs) + '\n').encode()

# Cookies arrive as strings from the CLI.  None if not a number.
def parse_cookie(cookie):
	try:
		return int(cookie)
	except (TypeError, ValueError):
		return None


# Glue between socketserver and ServerModule.

class Handler(socketserver.StreamRequestHandler):
	def handle(self):
		self.server.module.server_reader(self)

class SocketServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
	# A request may be what is stopping the server.
	block_on_close = False

	def __init__(self, module):
		self.module = module
		self.stopping = False
		super().__init__(dozer.server.path, Handler)

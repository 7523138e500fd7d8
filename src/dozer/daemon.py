# dozer.daemon - daemon event queue and lifecycle
# All state is owned by the thread running the event loop.  Other
# threads (GLib / D-Bus, timers, inotify, the socket server) hand work
# over with call().

import atexit
import contextlib
import os
import queue
import signal
import sys
import time

import dozer
import dozer.server
from dozer.logging import log

# Daemon's PID file.
pid_file = dozer.run_dir + '/daemon.pid'

# How long `dozer stop` waits for the daemon to exit, in seconds.
STOP_TIMEOUT = 10

class EventLoop:
	'''Work queue of the thread which owns the daemon's state.'''

	stopping = False

	def __init__(self):
		self.queue = queue.Queue()

	def call(self, func, *args, **kwargs):
		self.queue.put((func, args, kwargs))

	# Runs until stop() was called and the queue is drained.
	def run(self):
		log.debug('Starting event loop.')
		while not (self.stopping and self.queue.empty()):
			func, args, kwargs = self.queue.get()
			log.trace('Calling %r with %r / %r', func, args, kwargs)
			try:
				func(*args, **kwargs)
			except Exception:
				log.exception('Error while calling %r:', func)
		log.debug('Event loop finished.')

	def stop(self):
		self.stopping = True

_event_loop = EventLoop()
call = _event_loop.call

# PID file

def is_alive(pid):
	try:
		os.kill(pid, 0)
	except ProcessLookupError:
		return False
	except PermissionError:
		pass  # Someone else's process
	return True

# Returns the PID of the running daemon, or None.
def read_pid():
	try:
		with open(pid_file, encoding='ascii') as f:
			pid = int(f.read())
	except FileNotFoundError:
		return None
	except ValueError:
		log.warning('Ignoring malformed PID file %r.', pid_file)
		return None
	if not is_alive(pid):
		log.debug('Ignoring stale PID file %r (PID %d).', pid_file, pid)
		return None
	return pid

def write_pid():
	with open(pid_file, 'w', encoding='ascii') as f:
		f.write('%d\n' % os.getpid())

def remove_pid():
	with contextlib.suppress(FileNotFoundError):
		os.remove(pid_file)

# Signals

# Handled on the event loop, not wherever the signal interrupted us.
def handle_signal(signalnum, _frame):
	if signalnum == signal.SIGHUP:
		log.info('Got %s, reloading the configuration.', signal.strsignal(signalnum))
		call(dozer.config.reload)
	else:
		log.info('Got %s, stopping.', signal.strsignal(signalnum))
		call(stop)

def install_signal_handlers():
	for signalnum in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
		signal.signal(signalnum, handle_signal)

# Lifecycle

def shutdown_selector(wanted_modules):
	wanted_modules.clear()

# Exit trap: stop all modules.
def shutdown():
	log.debug('Shutting down.')
	dozer.module.selectors['95-shutdown'] = shutdown_selector
	dozer.module.update()
	remove_pid()
	log.debug('Shutdown complete.')

# Runs the daemon in this process.  ready() is called once all modules
# are started.
def serve(ready=None):
	install_signal_handlers()
	write_pid()
	atexit.register(shutdown)

	dozer.config.reconfigure()
	if ready is not None:
		ready()

	_event_loop.run()
	log.debug('Daemon is exiting.')

def start(fork=True):
	'''Starts the daemon, in a child process unless fork is False.'''
	pid = read_pid()
	if pid is not None:
		raise dozer.UserError('The daemon is already running (PID %d).' % pid)

	if not fork:
		serve()
		return 0

	# The child writes to this pipe once it is up.  If it dies instead,
	# the parent reads EOF.
	(ready_r, ready_w) = os.pipe()
	daemon_pid = os.fork()

	if daemon_pid == 0:
		os.close(ready_r)

		def ready():
			os.write(ready_w, b'ok')
			os.close(ready_w)

		serve(ready)
		# Do not return into the parent's code.
		sys.exit(0)

	os.close(ready_w)
	with os.fdopen(ready_r, 'rb') as f:
		status = f.read()
	if status != b'ok':
		log.critical('Daemon start-up failed.')
		os.waitpid(daemon_pid, 0)
		return 1

	log.info('Daemon started (PID %d).', daemon_pid)
	return 0

def stop():
	log.info('Daemon is stopping...')
	# Stop modules (and their threads) now, rather than from the exit
	# trap, which would wait for those threads first.
	atexit.unregister(shutdown)
	shutdown()

	# Keep pumping extant events, so worker threads can exit cleanly.
	_event_loop.stop()

def stop_remote():
	'''Tells the running daemon to stop, and waits for it to exit.'''
	pid = read_pid()
	if pid is None:
		raise dozer.UserError('The daemon is not running (no live PID in %r).' % pid_file)

	log.debug('Stopping daemon (PID %d)...', pid)
	dozer.server.notify('stop')

	deadline = time.monotonic() + STOP_TIMEOUT
	while is_alive(pid):
		if time.monotonic() > deadline:
			raise dozer.UserError('The daemon (PID %d) did not exit within %d seconds.' % (pid, STOP_TIMEOUT))
		time.sleep(0.1)
	log.info('Daemon stopped.')

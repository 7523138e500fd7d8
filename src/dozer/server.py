# dozer.server - control socket client
# The daemon listens on a UNIX socket (see the 'server' module), which
# the CLI and other local programs use to query and command it.  A
# request is one JSON array terminated by a newline; replies are either
# plain text or one JSON object with a 'value' or an 'error' key.

import json
import os
import socket

import dozer

# Path to the UNIX socket filesystem object.
path = os.environ.setdefault('DOZER_SOCKET', dozer.run_dir + '/daemon.sock')

# How long to wait for a reply, in seconds.  Power actions wait on the
# session manager, which may in turn wait on polkit.
REPLY_TIMEOUT = 60

def encode(args):
	return (json.dumps(args) + '\n').encode()

def connect():
	s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
	try:
		s.connect(path)
	except (FileNotFoundError, ConnectionRefusedError) as e:
		s.close()
		raise dozer.UserError('Failed to connect to daemon UNIX socket at %r (%s). Is the dozer daemon running?' %
							  (path, e))
	return s

# Send a command, without waiting for it to be processed.
def notify(*args):
	with connect() as s:
		s.sendall(encode(args))

# Send a command, and return the raw reply.
def query(*args):
	with connect() as s:
		s.sendall(encode(args))
		s.shutdown(socket.SHUT_WR)
		s.settimeout(REPLY_TIMEOUT)
		try:
			with s.makefile('rb') as f:
				return f.read()
		except TimeoutError:
			raise dozer.UserError('No reply from the daemon within %d seconds.' % REPLY_TIMEOUT)

# Send a command with a JSON reply, and return the reply's value.
# The daemon's error, if any, is raised as a UserError.
def request(*args):
	raw = query(*args)
	if not raw:
		raise dozer.UserError('The daemon did not reply to %r (see its log).' % (args,))
	try:
		reply = json.loads(raw)
	except ValueError:
		raise dozer.UserError('Malformed reply from the daemon: %r' % (raw,))
	if reply.get('error'):
		raise dozer.UserError(reply['error'])
	return reply.get('value')

# dozer.inhibitors - inhibitor ledgers
# Applications may ask us not to blank the screen (screen saver
# inhibitors) or not to suspend (power management inhibitors).  Each
# reservation is identified by a cookie.

import dozer
from dozer.events import Event
from dozer.logging import log

log = log.getChild('inhibitors')

SCREENSAVER = 'screensaver'
POWER_MANAGEMENT = 'power-management'

KINDS = (SCREENSAVER, POWER_MANAGEMENT)

class InhibitorLedger:
	def __init__(self, kind, events):
		self.kind = kind
		self.events = events
		# Cookie -> application name
		self.inhibitors = {}

	def add(self, cookie, application):
		log.debug('New %s inhibitor %d from %r.', self.kind, cookie, application)
		self.inhibitors[cookie] = application
		self.events.emit(Event.INHIBITORS_UPDATED, self.kind)

	def remove(self, cookie):
		if cookie not in self.inhibitors:
			return False
		log.debug('Removed %s inhibitor %d (%r).', self.kind, cookie, self.inhibitors[cookie])
		del self.inhibitors[cookie]
		self.events.emit(Event.INHIBITORS_UPDATED, self.kind)
		return True

	def applications(self):
		return list(self.inhibitors.values())

	def __contains__(self, cookie):
		return cookie in self.inhibitors

	def __len__(self):
		return len(self.inhibitors)


class CookieJar:
	'''Hands out inhibitor cookies: increasing, wrapping around before
	overflowing 32 bits, and skipping cookies that are still held.'''

	MAX_COOKIE = 2**32 - 1

	def __init__(self, *ledgers):
		self.ledgers = ledgers
		self.last = 0

	def in_use(self, cookie):
		return any(cookie in ledger for ledger in self.ledgers)

	def allocate(self):
		for _ in range(self.MAX_COOKIE):
			self.last = self.last % self.MAX_COOKIE + 1
			if not self.in_use(self.last):
				return self.last
		raise dozer.UserError('No free inhibitor cookies')

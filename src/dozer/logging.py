# dozer.logging - logging implementation

import logging
import os

# Severity levels specific to dozer
TRACE = logging.DEBUG - 5
SECURITY = logging.ERROR - 5

logging.addLevelName(TRACE, 'TRACE')
logging.addLevelName(SECURITY, 'SECURITY')

# Logger class which exposes the extra levels as methods
class Logger(logging.getLoggerClass()):
	def trace(self, *args, **kwargs):
		self.log(TRACE, *args, **kwargs)

	# Screen locking, and anything else the user relies on for the
	# machine to be safe to walk away from.
	def security(self, *args, **kwargs):
		self.log(SECURITY, *args, **kwargs)

logging.setLoggerClass(Logger)

logging.basicConfig(
	format=os.getenv('DOZER_LOG_FORMAT', '%(name)s: %(message)s'),
	level=[
		logging.CRITICAL,
		logging.ERROR,
		SECURITY,
		logging.WARNING,
		logging.INFO,
		logging.DEBUG,
		TRACE,
	][4 + int(os.getenv('DOZER_VERBOSE', '0'))]
)
log = logging.getLogger('dozer')

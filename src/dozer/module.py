# dozer.module - module machinery
# Long-running parts of the daemon (bus connections, the power
# manager, the control socket, ...) are modules, which are started and
# stopped to match what the selectors below ask for.

import importlib

import dozer
from dozer.logging import log

# Base class for modules.
class Module:
	# All modules should define their name.
	name = None

	# Constructor. You can specify module parameters as its signature.
	def __init__(self):
		self.log = log.getChild('modules.' + self.name)

	# Start function.  If called, stop() will also be called exactly once.
	# All resource acquisition and initialization should happen here.
	def start(self):
		pass

	# Stop function.  Called if start() was called.
	def stop(self):
		pass

	# Optional dependencies.
	# Returns a list of module specs.
	def get_dependencies(self):
		return []

	# Optional reconfiguration function.
	# Should accept the same arguments as the constructor.
	# Called on a running module instead of restarting it, when only
	# its parameters changed.  Returns True if the running instance
	# now corresponds to the new parameters, False to have it
	# restarted instead.
	def reconfigure(self, *_args, **_kwargs):
		return False

# Currently running modules, in the order they were started.
running_modules = []

# The modules we want to be running, according to the last invocation
# of update().
wanted_modules = []

# Functions which build the list of modules which should be running
# right now, called in order of their key.  Each accepts a list, which
# it should mutate to describe which modules it wants.
selectors = {}

# Map from module specs to Module instances.
module_instances = {}

def find_class(module_name):
	def search(p):
		return ([p] if p.name == module_name else []) + sum((search(c) for c in p.__subclasses__()), start=[])
	module_classes = search(Module)
	if not module_classes:
		log.debug('Loading module %r', module_name)
		try:
			importlib.import_module('dozer.modules.' + module_name)
		except ModuleNotFoundError as e:
			raise dozer.UserError('Module %r not found (%s)' % (module_name, e))
		module_classes = search(Module)
	if not module_classes:
		raise dozer.UserError('No module class defined with name == %r' % (module_name,))
	return module_classes[-1]  # Use the most recently defined class

def get(module_spec):
	if module_spec not in module_instances:
		module_class = find_class(module_spec[0])
		module_instances[module_spec] = module_class(*module_spec[1:])
	return module_instances[module_spec]

# Start or stop modules until running_modules matches wanted_modules.
def start_stop_modules():
	log.trace('Running modules:%s', ''.join('\n- ' + str(m) for m in running_modules))
	log.trace('Wanted  modules:%s', ''.join('\n- ' + str(m) for m in wanted_modules))

	errors = []

	# One operation at a time; starting or stopping a module may
	# change wanted_modules.
	def do_one_module():
		# 1. Reconfigure modules which can be reconfigured.
		for wanted_module in wanted_modules:
			if wanted_module in running_modules:
				continue
			for i, running_module in enumerate(running_modules):
				if wanted_module[0] == running_module[0] and \
				   running_module not in wanted_modules:
					module = get(running_module)
					if module.reconfigure(*wanted_module[1:]):
						running_modules[i] = wanted_module
						del module_instances[running_module]
						module_instances[wanted_module] = module
						log.debug('Reconfigured module %r from %r to %r.',
								  wanted_module[0], running_module[1:], wanted_module[1:])
						return True

		# 2. Stop modules which we no longer want, most recent first.
		for i, running_module in reversed(list(enumerate(running_modules))):
			if running_module not in wanted_modules:
				del running_modules[i]
				log.debug('Stopping module %r', running_module)
				# Keep stopping other modules even if this one fails.
				try:
					get(running_module).stop()
				except Exception:
					log.exception('Error when attempting to stop module %r:', running_module)
					errors.append(running_module)
				del module_instances[running_module]
				return True

		# 3. Start modules which we now want to be running.
		for wanted_module in wanted_modules:
			if wanted_module not in running_modules:
				running_modules.append(wanted_module)
				log.debug('Starting module: %r', wanted_module)
				get(wanted_module).start()
				return True

		return False

	while do_one_module():
		pass

	if errors:
		raise dozer.UserError('Failed to stop some modules.')

	log.debug('Modules are synchronized.')

# Start or stop modules according to the current circumstances.
def update():
	global wanted_modules

	wanted = []
	for key in sorted(selectors.keys()):
		selector = selectors[key]
		log.trace('Calling module selector: %r', selector)
		selector(wanted)

	# Dependencies go before their dependents.
	with_dependencies = []
	def add(module_spec):
		for dependency in get(module_spec).get_dependencies():
			add(dependency)
		with_dependencies.append(module_spec)
	for module_spec in wanted:
		add(module_spec)

	wanted_modules = list(dict.fromkeys(with_dependencies))

	start_stop_modules()

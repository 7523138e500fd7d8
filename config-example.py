# Sample dozer configuration file.
# Copy it to ~/.config/dozer/config.py and adjust to taste.

# The main duty of this configuration file is to define a function,
# config, which receives dozer's settings object and changes the
# settings it cares about.  Everything not mentioned keeps its default.

# The function is re-evaluated whenever the configuration is reloaded
# (dozer reload, SIGHUP, or when this file is saved), so the file may
# compute settings from the current circumstances.

# Actions are named by string: 'none', 'lock', 'sleep', 'hibernate'
# or 'shutdown'.

# Here is a very simple configuration.  It suspends after 10 idle
# minutes on battery, and never on AC.

# def config(c):
#     c.suspend_battery_timeout = 10

# Below is a more elaborate configuration.

import socket

def config(c):
	# Idle actions, in minutes of user inactivity.
	c.suspend_battery_timeout = 10
	c.suspend_battery_action = 'sleep'

	# We can have different settings for different machines by
	# checking the host name.
	if socket.gethostname() == 'home-desktop':
		c.suspend_ac_timeout = 60
		c.suspend_ac_action = 'sleep'

	# Lid: sleep on battery, only lock on AC.  Nothing happens while an
	# external monitor is connected.
	c.lid_battery_action = 'sleep'
	c.lid_ac_action = 'lock'
	c.disable_lid_on_external_monitors = True

	# Save the session before the battery runs dry.
	c.critical_battery = 5
	c.critical_action = 'hibernate'

	# Lock the screen before suspending.
	c.lock_on_sleep = True
	c.lock_command = ['i3lock', '--nofork', '--color=000000']

	# Let video players hold off the screen saver and idle suspend.
	c.desktop_ss = True
	c.desktop_pm = True

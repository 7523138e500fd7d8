from unittest.mock import MagicMock

import pytest

from conftest import FakeDisplays
from dozer.policy import Action, PowerPolicy, describe_battery


def make_core(on_battery=True, battery_left=50.0):
	core = MagicMock()
	core.on_battery.return_value = on_battery
	core.battery_left.return_value = battery_left
	for method in ('lock_screen', 'suspend', 'hibernate', 'power_off'):
		getattr(core, method).return_value = ''
	return core


class TestPerform:
	@pytest.mark.parametrize('action, method', [
		(Action.LOCK, 'lock_screen'),
		(Action.SLEEP, 'suspend'),
		(Action.HIBERNATE, 'hibernate'),
		(Action.SHUTDOWN, 'power_off'),
	])
	def test_dispatch(self, settings, action, method):
		core = make_core()
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.perform(action) == ''
		getattr(core, method).assert_called_once_with()

	def test_none_does_nothing(self, settings):
		core = make_core()
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.perform(Action.NONE) == ''
		core.suspend.assert_not_called()
		core.lock_screen.assert_not_called()

	def test_failure_is_returned(self, settings):
		core = make_core()
		core.hibernate.return_value = 'Access denied'
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.perform(Action.HIBERNATE) == 'Access denied'


class TestLidClosed:
	def test_external_monitor_suppresses_action(self, settings):
		settings.disable_lid_on_external_monitors = True
		core = make_core(on_battery=True)
		displays = FakeDisplays(external=True)
		policy = PowerPolicy(core, settings, displays)

		assert policy.handle_lid_closed() is None

		assert displays.refreshed == 1
		core.suspend.assert_not_called()
		core.lock_screen.assert_not_called()

	def test_internal_monitor_only(self, settings):
		settings.disable_lid_on_external_monitors = True
		settings.lid_battery_action = Action.SLEEP
		core = make_core(on_battery=True)
		policy = PowerPolicy(core, settings, FakeDisplays(external=False))

		assert policy.handle_lid_closed() == Action.SLEEP
		core.suspend.assert_called_once_with()

	def test_ac_action_on_ac(self, settings):
		settings.lid_ac_action = Action.LOCK
		core = make_core(on_battery=False)
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.handle_lid_closed() == Action.LOCK
		core.lock_screen.assert_called_once_with()
		core.suspend.assert_not_called()

	def test_external_monitor_ignored_when_disabled(self, settings):
		settings.disable_lid_on_external_monitors = False
		settings.lid_battery_action = Action.HIBERNATE
		core = make_core(on_battery=True)
		displays = FakeDisplays(external=True)
		policy = PowerPolicy(core, settings, displays)

		assert policy.handle_lid_closed() == Action.HIBERNATE
		core.hibernate.assert_called_once_with()
		assert displays.refreshed == 0


class TestPrepareForSuspend:
	def test_locks_before_sleep(self, settings):
		settings.lock_on_sleep = True
		core = make_core()
		policy = PowerPolicy(core, settings, FakeDisplays())

		policy.handle_prepare_for_suspend(True)

		core.lock_screen.assert_called_once_with()

	def test_nothing_on_resume(self, settings):
		core = make_core()
		policy = PowerPolicy(core, settings, FakeDisplays())

		policy.handle_prepare_for_suspend(False)

		core.lock_screen.assert_not_called()

	def test_nothing_when_disabled(self, settings):
		settings.lock_on_sleep = False
		core = make_core()
		policy = PowerPolicy(core, settings, FakeDisplays())

		policy.handle_prepare_for_suspend(True)

		core.lock_screen.assert_not_called()


class TestCriticalBattery:
	def test_fires_at_threshold(self, settings):
		settings.critical_battery = 10
		settings.critical_action = Action.HIBERNATE
		core = make_core(battery_left=10.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.check_battery() == Action.HIBERNATE
		core.hibernate.assert_called_once_with()

	def test_not_above_threshold(self, settings):
		settings.critical_battery = 10
		core = make_core(battery_left=11.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.check_battery() is None
		core.hibernate.assert_not_called()

	def test_fires_once_per_crossing(self, settings):
		settings.critical_battery = 10
		settings.critical_action = Action.SHUTDOWN
		core = make_core(battery_left=8.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		for level in (8.0, 7.0, 5.0, 5.0):
			core.battery_left.return_value = level
			policy.check_battery()

		core.power_off.assert_called_once_with()

	def test_fires_again_after_recharge(self, settings):
		settings.critical_battery = 10
		core = make_core(battery_left=9.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		policy.check_battery()
		core.battery_left.return_value = 30.0
		policy.check_battery()
		core.battery_left.return_value = 9.0
		policy.check_battery()

		assert core.hibernate.call_count == 2

	def test_not_on_ac(self, settings):
		core = make_core(on_battery=False, battery_left=3.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.check_battery() is None
		core.hibernate.assert_not_called()

	def test_unknown_level_is_not_critical(self, settings):
		core = make_core(battery_left=0.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		assert policy.check_battery() is None
		core.hibernate.assert_not_called()

	def test_unknown_level_keeps_latch(self, settings):
		settings.critical_battery = 10
		core = make_core(battery_left=5.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		for level in (5.0, 0.0, 5.0):
			core.battery_left.return_value = level
			policy.check_battery()

		assert core.hibernate.call_count == 1

	def test_fires_again_after_ac(self, settings):
		settings.critical_battery = 10
		core = make_core(battery_left=5.0)
		policy = PowerPolicy(core, settings, FakeDisplays())

		policy.check_battery()
		core.on_battery.return_value = False
		policy.check_battery()
		core.on_battery.return_value = True
		policy.check_battery()

		assert core.hibernate.call_count == 2


class TestDescribeBattery:
	@pytest.mark.parametrize('left, on_battery, text', [
		(0.0, False, 'On AC'),
		(100.0, False, 'Charged'),
		(100.0, True, 'Charged'),
		(42.4, True, 'Battery at 42%'),
		(42.6, False, 'Battery at 43% (Charging)'),
	])
	def test_text(self, left, on_battery, text):
		assert describe_battery(left, on_battery) == text

import pytest

from conftest import FakeDeviceService, Recorder
from dozer.devices import DeviceRegistry
from dozer.events import Event, EventBus


def make_registry(service=None, on_battery=True):
	service = service or FakeDeviceService()
	events = EventBus()
	recorder = Recorder(events)
	power = {'on_battery': on_battery}
	registry = DeviceRegistry(service, events, lambda: power['on_battery'])
	return registry, service, recorder, power


class TestScan:
	def test_scan_adds_devices(self):
		registry, service, recorder, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 80.0)
		ac = service.add('line_power_AC', Type=1, Online=True)

		registry.scan()

		assert set(registry.devices) == {bat, ac}
		assert registry.devices[bat].percentage == 80.0
		assert registry.devices[ac].online is True
		assert recorder.count(Event.DEVICES_UPDATED) == 1

	def test_repeated_scans_do_not_duplicate(self):
		registry, service, _, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 80.0)

		registry.scan()
		device = registry.devices[bat]
		registry.scan()
		registry.device_added(bat)

		assert list(registry.devices) == [bat]
		assert registry.devices[bat] is device

	def test_scan_keeps_known_device_state(self):
		registry, service, _, _ = make_registry(on_battery=False)
		bat = service.add_battery('battery_BAT0', 80.0)
		registry.scan()

		service.props[bat]['Percentage'] = 20.0
		registry.scan()

		assert registry.devices[bat].percentage == 80.0

	def test_jobs_are_not_devices(self):
		registry, service, recorder, _ = make_registry()
		job = service.jobs_path + '/job_1'
		service.props[job] = {'Type': 2}

		registry.scan()
		registry.device_added(job)

		assert registry.devices == {}
		assert recorder.count(Event.DEVICE_ADDED) == 0

	def test_unreachable_service_yields_no_devices(self):
		registry, _, recorder, _ = make_registry()

		registry.scan()

		assert registry.devices == {}
		assert recorder.count(Event.DEVICES_UPDATED) == 1


class TestAddRemove:
	def test_device_added_emits_and_scans(self):
		registry, service, recorder, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 50.0)

		registry.device_added(bat)

		assert bat in registry.devices
		assert (Event.DEVICE_ADDED, bat) in recorder.emitted

	def test_stale_removal_is_ignored(self):
		registry, service, recorder, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 50.0)
		registry.scan()

		registry.device_removed(bat)

		assert bat in registry.devices
		assert recorder.count(Event.DEVICE_REMOVED) == 0

	def test_removal(self):
		registry, service, recorder, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 50.0)
		registry.scan()

		service.remove(bat)
		registry.device_removed(bat)

		assert registry.devices == {}
		assert (Event.DEVICE_REMOVED, bat) in recorder.emitted

	def test_readded_device_starts_fresh(self):
		registry, service, _, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 50.0)
		registry.scan()
		old = registry.devices[bat]

		service.remove(bat)
		registry.device_removed(bat)
		service.add('battery_BAT0', Type=2, IsPresent=True, NativePath='BAT0')
		registry.device_added(bat)

		assert registry.devices[bat] is not old
		assert registry.devices[bat].percentage == 0.0

	def test_removal_of_unknown_device_rescans(self):
		registry, service, recorder, _ = make_registry()
		bat = service.add_battery('battery_BAT0', 50.0)

		registry.device_removed(bat)

		assert bat in registry.devices
		assert recorder.count(Event.DEVICE_REMOVED) == 0


class TestAggregates:
	def test_battery_left_is_the_mean(self):
		registry, service, _, _ = make_registry()
		service.add_battery('battery_BAT0', 80.0)
		service.add_battery('battery_BAT1', 40.0)
		registry.scan()

		assert registry.battery_left() == pytest.approx(60.0)

	def test_battery_left_without_batteries(self):
		registry, service, _, _ = make_registry()
		service.add('line_power_AC', Type=1, Online=True)
		registry.scan()

		assert registry.battery_left() == 0.0
		assert registry.has_battery() is False

	def test_absent_and_synthetic_batteries_do_not_count(self):
		registry, service, _, _ = make_registry()
		service.add_battery('battery_BAT0', 80.0)
		service.add_battery('battery_BAT1', 10.0, present=False)
		service.add_battery('DisplayDevice', 10.0, native_path='')
		registry.scan()

		assert registry.battery_left() == pytest.approx(80.0)
		assert len(registry.batteries()) == 1

	def test_has_battery_counts_absent_batteries(self):
		registry, service, _, _ = make_registry()
		service.add_battery('battery_BAT0', 0.0, present=False)
		registry.scan()

		assert registry.has_battery() is True

	def test_percentage_is_clamped(self):
		registry, service, _, _ = make_registry()
		service.add_battery('battery_BAT0', 104.0)
		service.add_battery('battery_BAT1', -3.0)
		registry.scan()

		levels = sorted(device.percentage for device in registry.batteries())
		assert levels == [0.0, 100.0]

	def test_times_are_summed(self):
		registry, service, _, _ = make_registry()
		service.add_battery('battery_BAT0', 80.0, TimeToEmpty=3600, TimeToFull=0)
		service.add_battery('battery_BAT1', 40.0, TimeToEmpty=1800, TimeToFull=-1)
		registry.scan()

		assert registry.time_to_empty() == 5400
		assert registry.time_to_full() == 0

	def test_battery_levels_refresh_only_on_battery(self):
		registry, service, _, power = make_registry(on_battery=False)
		bat = service.add_battery('battery_BAT0', 80.0)
		registry.scan()
		service.props[bat]['Percentage'] = 30.0

		assert registry.battery_left() == pytest.approx(80.0)

		power['on_battery'] = True
		assert registry.battery_left() == pytest.approx(30.0)

	def test_update_refreshes_one_device(self):
		registry, service, recorder, _ = make_registry(on_battery=False)
		bat = service.add_battery('battery_BAT0', 80.0)
		registry.scan()
		recorder.clear()
		service.props[bat]['Percentage'] = 75.0

		registry.update(bat)

		assert registry.devices[bat].percentage == 75.0
		assert recorder.count(Event.DEVICES_UPDATED) == 1

	def test_update_of_unknown_path_does_nothing(self):
		registry, _, recorder, _ = make_registry()

		registry.update('/org/freedesktop/UPower/devices/nothing')

		assert recorder.emitted == []

	def test_failed_update_keeps_old_values(self):
		registry, service, _, _ = make_registry(on_battery=False)
		bat = service.add_battery('battery_BAT0', 80.0)
		registry.scan()

		service.remove(bat)
		registry.update(bat)

		assert registry.devices[bat].percentage == 80.0
		assert registry.devices[bat].is_present is True

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import dozer.module
from dozer.inhibitors import POWER_MANAGEMENT, SCREENSAVER
from dozer.modules.server import ServerModule


@pytest.fixture
def core():
	core = MagicMock()
	core.QUERIES = {'battery-left': None, 'on-battery': None}
	core.COMMANDS = {'suspend': None, 'lock-screen': None}
	return core

@pytest.fixture
def server(core, monkeypatch):
	monkeypatch.setitem(dozer.module.module_instances, ('power',), SimpleNamespace(core=core))
	return ServerModule()


class TestRunCommand:
	def test_ping(self, server):
		assert server.run_command('ping') == b'pong\n'

	def test_query(self, server, core):
		core.query.return_value = 60.0

		assert json.loads(server.run_command('query', 'battery-left')) == {'value': 60.0}
		core.query.assert_called_once_with('battery-left')

	def test_unknown_query(self, server, core):
		reply = json.loads(server.run_command('query', 'mood'))

		assert reply['error'].startswith('Unknown query')
		core.query.assert_not_called()

	def test_power_command(self, server, core):
		core.command.return_value = 'No backend available'

		assert json.loads(server.run_command('suspend')) == {'error': 'No backend available'}
		core.command.assert_called_once_with('suspend')

	def test_inhibit(self, server, core):
		assert json.loads(server.run_command('inhibit', POWER_MANAGEMENT, '3', 'mpv')) == {'error': ''}
		core.inhibit.assert_called_once_with(POWER_MANAGEMENT, 3, 'mpv')

	@pytest.mark.parametrize('command', [
		('inhibit', POWER_MANAGEMENT, 'abc', 'mpv'),
		('inhibit', SCREENSAVER, None, 'mpv'),
		('uninhibit', SCREENSAVER, '1.5'),
	])
	def test_invalid_cookie(self, server, core, command):
		reply = json.loads(server.run_command(*command))

		assert reply['error'].startswith('Invalid cookie')
		core.inhibit.assert_not_called()
		core.uninhibit.assert_not_called()

	def test_uninhibit_unknown(self, server, core):
		core.uninhibit.return_value = False

		reply = json.loads(server.run_command('uninhibit', SCREENSAVER, '9'))

		assert reply['error'] == 'No such inhibitor: 9'

	def test_inhibitors(self, server, core):
		applications = {SCREENSAVER: ['firefox'], POWER_MANAGEMENT: ['mpv', 'rsync']}
		core.ledger.side_effect = lambda kind: SimpleNamespace(applications=lambda: applications[kind])

		assert server.run_command('inhibitors') == (
			b'screensaver: firefox\n'
			b'power-management: mpv\n'
			b'power-management: rsync\n'
		)

	def test_unknown_command(self, server):
		assert json.loads(server.run_command('dance')) == {'error': 'Unknown command'}

	def test_status(self, server, core):
		core.battery_left.return_value = 50.0
		core.on_battery.return_value = False
		core.screensaver_inhibitors.return_value = []
		core.power_management_inhibitors.return_value = ['mpv']
		core.devices.devices = {}

		status = server.run_command('status')

		assert b'Battery: Battery at 50% (Charging)\n' in status
		assert b'Power management inhibitors: mpv\n' in status
		assert b'Configuration: ' in status

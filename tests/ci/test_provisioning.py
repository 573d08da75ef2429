"""
Tests for browser provisioning and the exclusion table.
"""

import os
import sys
from unittest.mock import AsyncMock, patch

import pytest

from push_testing.browser import provisioning
from push_testing.browser.provisioning import BrowserHandle, BrowserProvisioner
from push_testing.config import BrowserExclusion, ServiceConfig


def _fake_browser(tmp_path, name: str, output: str):
	executable = tmp_path / name
	executable.write_text(f'#!/bin/sh\necho "{output}"\n')
	executable.chmod(0o755)
	return executable


class TestExclusions:
	def test_release_level_rules(self):
		config = ServiceConfig()

		assert config.find_exclusion('chrome', 'unstable') is not None
		assert config.find_exclusion('chromium', 'beta') is not None
		assert config.find_exclusion('chrome', 'stable') is None

	def test_version_threshold_rule(self):
		config = ServiceConfig()

		legacy = config.find_exclusion('chrome', 'stable', version_number=51)
		assert legacy is not None
		assert '51' in legacy.reason
		assert config.find_exclusion('chrome', 'stable', version_number=52) is None
		assert config.find_exclusion('chrome', 'stable', version_number=None) is None

	def test_custom_table(self):
		config = ServiceConfig(
			exclusions=(BrowserExclusion(browser_name='firefox', max_version=48, reason='too old'),),
		)

		assert config.find_exclusion('firefox', 'beta', 48).reason == 'too old'
		assert config.find_exclusion('firefox', 'beta', 49) is None
		assert config.find_exclusion('chrome', 'unstable') is None


class TestBrowsersToDownload:
	def test_skips_release_level_exclusions(self):
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={})

		assert provisioner.browsers_to_download() == [
			('chrome', 'stable'),
			('chrome', 'beta'),
			('chromium', 'stable'),
		]

	def test_follows_allow_lists(self):
		config = ServiceConfig(supported_browsers=('chrome',), supported_versions=('stable',))
		provisioner = BrowserProvisioner(config, search_paths={})

		assert provisioner.browsers_to_download() == [('chrome', 'stable')]


class TestDownload:
	@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as the browser')
	async def test_already_installed_browser_is_not_downloaded(self, tmp_path):
		executable = _fake_browser(tmp_path, 'chrome', 'Google Chrome 120.0.6099.109')
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={('chrome', 'stable'): [str(executable)]})

		with patch('asyncio.create_subprocess_exec') as create_subprocess:
			await provisioner.download_browser('chrome', 'stable')

		create_subprocess.assert_not_called()

	async def test_unknown_target_raises(self):
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={})

		with pytest.raises(RuntimeError, match='No installer'):
			await provisioner.download_browser('chrome', 'unstable')

	async def test_failed_install_raises(self):
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={})
		process = AsyncMock()
		process.communicate = AsyncMock(return_value=(b'', b'permission denied'))
		process.returncode = 1

		with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=process)) as create_subprocess:
			with pytest.raises(RuntimeError, match='permission denied'):
				await provisioner.download_browser('chromium', 'stable')

		args = create_subprocess.call_args.args
		assert args[1:] == ('-m', 'playwright', 'install', 'chromium')

	async def test_download_browsers_reports_all_failures(self):
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={})
		attempted = []

		async def fail_for_chrome(browser_name, release):
			attempted.append((browser_name, release))
			if browser_name == 'chrome':
				raise RuntimeError('offline')

		provisioner.download_browser = fail_for_chrome

		with pytest.raises(RuntimeError) as exc_info:
			await provisioner.download_browsers()

		assert len(attempted) == 3
		assert 'chrome (stable)' in str(exc_info.value)
		assert 'chrome (beta)' in str(exc_info.value)
		assert 'chromium' not in str(exc_info.value)


class TestGetLocalBrowser:
	async def test_missing_browser_returns_none(self, tmp_path):
		provisioner = BrowserProvisioner(
			ServiceConfig(), search_paths={('chrome', 'stable'): [str(tmp_path / 'nope')]}
		)

		assert await provisioner.get_local_browser('chrome', 'stable') is None
		assert await provisioner.get_local_browser('chrome', 'beta') is None

	@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as the browser')
	async def test_resolves_executable_and_version(self, tmp_path):
		executable = _fake_browser(tmp_path, 'chrome', 'Google Chrome 120.0.6099.109')
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={('chrome', 'stable'): [str(tmp_path / 'chr*')]})

		handle = await provisioner.get_local_browser('chrome', 'stable')

		assert handle == BrowserHandle(
			browser_name='chrome',
			release='stable',
			executable_path=str(executable),
			version_number=120,
		)

	@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as the browser')
	async def test_unparseable_version_is_none(self, tmp_path):
		executable = _fake_browser(tmp_path, 'chromium', 'Chromium dev build')
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={('chromium', 'stable'): [str(executable)]})

		handle = await provisioner.get_local_browser('chromium', 'stable')

		assert handle is not None
		assert handle.version_number is None

	@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as the browser')
	async def test_hung_version_probe_is_killed(self, tmp_path, monkeypatch):
		pid_file = tmp_path / 'pid'
		executable = tmp_path / 'chrome'
		executable.write_text(f'#!/bin/sh\necho $$ > "{pid_file}"\nexec sleep 30\n')
		executable.chmod(0o755)
		monkeypatch.setattr(provisioning, 'VERSION_TIMEOUT', 0.5)
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={('chrome', 'stable'): [str(executable)]})

		handle = await provisioner.get_local_browser('chrome', 'stable')

		assert handle is not None
		assert handle.version_number is None
		with pytest.raises(ProcessLookupError):
			os.kill(int(pid_file.read_text()), 0)
		# The failed probe is not cached
		assert provisioner._versions == {}

	@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as the browser')
	async def test_version_is_probed_once(self, tmp_path):
		executable = _fake_browser(tmp_path, 'chrome', 'Google Chrome 120.0.6099.109')
		provisioner = BrowserProvisioner(ServiceConfig(), search_paths={('chrome', 'stable'): [str(executable)]})
		await provisioner.get_local_browser('chrome', 'stable')

		with patch('asyncio.create_subprocess_exec') as create_subprocess:
			handle = await provisioner.get_local_browser('chrome', 'stable')

		create_subprocess.assert_not_called()
		assert handle.version_number == 120


def test_launch_options_pre_grant_notifications():
	handle = BrowserHandle(browser_name='chrome', release='stable', executable_path='/opt/google/chrome/chrome')

	options = handle.launch_options()

	assert options['executable_path'] == '/opt/google/chrome/chrome'
	assert 'notifications' in options['permissions']

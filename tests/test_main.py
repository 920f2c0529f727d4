"""
Tests for configuration loading and the daemon wiring.
"""

from datetime import datetime, timezone

from conftest import FakeGateway, always_fail, remote_time


class TestLoadConfig:
    """TOML configuration layered over defaults."""
    
    def test_defaults_without_file(self):
        from clock_sync.main import load_config
        
        config = load_config()
        
        assert config['sync']['max_retries'] == 3
        assert config['sync']['calibration_interval_minutes'] == 60
        assert config['refresh']['interval_minutes'] == 5
        assert config['gateway']['timeout'] == 10.0
    
    def test_missing_file_uses_defaults(self, tmp_path):
        from clock_sync.main import load_config
        
        config = load_config(str(tmp_path / "absent.toml"))
        
        assert config['refresh']['timezones'] == ['UTC']
    
    def test_file_overrides_keys(self, tmp_path):
        from clock_sync.main import load_config
        
        path = tmp_path / "config.toml"
        path.write_text(
            '[refresh]\n'
            'interval_minutes = 10\n'
            'timezones = ["Asia/Tokyo"]\n'
            '\n'
            '[[overlays]]\n'
            'name = "tokyo"\n'
            'timezones = ["Asia/Tokyo"]\n'
            'interval_minutes = 1\n'
        )
        
        config = load_config(str(path))
        
        assert config['refresh'] == {'interval_minutes': 10, 'timezones': ['Asia/Tokyo']}
        assert config['overlays'][0]['name'] == 'tokyo'
        # Untouched sections keep defaults
        assert config['sync']['backoff_ms'] == 1000
    
    def test_defaults_are_not_shared(self):
        from clock_sync.main import load_config
        
        first = load_config()
        first['refresh']['timezones'].append('Asia/Tokyo')
        
        assert load_config()['refresh']['timezones'] == ['UTC']


class TestClockSyncDaemon:
    """Daemon construction and the one-shot mode."""
    
    def make_config(self):
        from clock_sync.main import load_config
        
        config = load_config()
        config['sync']['backoff_ms'] = 0
        config['refresh']['timezones'] = ['Asia/Tokyo', 'UTC']
        config['overlays'] = [{'timezones': ['Asia/Tokyo', 'Europe/Paris'], 'interval_minutes': 1}]
        return config
    
    def test_consumers_from_config(self):
        from clock_sync.main import ClockSyncDaemon
        
        daemon = ClockSyncDaemon(self.make_config(), gateway=FakeGateway(always_fail))
        try:
            names = [c.name for c in daemon.consumers]
            assert names == ['clocks', 'overlay-1']
            assert daemon.consumers[1].get_interval_minutes() == 1
            assert daemon.engine.store is daemon.store
        finally:
            daemon.close()
    
    def test_run_once_calibrates_every_consumer_zone(self):
        from clock_sync.interfaces.sync_result import ResolvedTime
        from clock_sync.main import ClockSyncDaemon
        
        gateway = FakeGateway(lambda tz, attempt: remote_time(datetime.now(timezone.utc), tz))
        daemon = ClockSyncDaemon(self.make_config(), gateway=gateway)
        try:
            results = daemon.run_once()
        finally:
            daemon.close()
        
        assert sorted(results) == ['Asia/Tokyo', 'Europe/Paris', 'UTC']
        assert all(isinstance(r, ResolvedTime) for r in results.values())
        assert sorted(gateway.calls) == ['Asia/Tokyo', 'Europe/Paris', 'UTC']
    
    def test_run_once_offline_degrades(self):
        from clock_sync.main import ClockSyncDaemon
        
        config = self.make_config()
        config['refresh']['timezones'] = ['Asia/Tokyo', 'Bad/Zone']
        config['overlays'] = []
        daemon = ClockSyncDaemon(config, gateway=FakeGateway(always_fail))
        try:
            results = daemon.run_once()
        finally:
            daemon.close()
        
        assert list(results) == ['Asia/Tokyo']
        assert daemon.store.get('Asia/Tokyo') == 9 * 60 * 60 * 1000


class TestClockConsumer:

    def test_live_timezone_changes(self):
        from clock_sync.main import ClockConsumer
        
        consumer = ClockConsumer('clocks', ['UTC'], 5)
        zones = consumer.get_timezones()
        zones.append('Asia/Tokyo')
        assert consumer.get_timezones() == ['UTC']
        
        consumer.set_timezones(['Asia/Tokyo'])
        assert consumer.get_timezones() == ['Asia/Tokyo']
    
    def test_on_tick_keeps_latest(self):
        from clock_sync.interfaces.sync_result import ResolvedTime
        from clock_sync.main import ClockConsumer, format_times
        
        consumer = ClockConsumer('clocks', ['UTC'], 5)
        results = {'UTC': ResolvedTime.from_wall_millis(3723000, 'UTC')}
        consumer.on_tick(results)
        
        assert consumer.latest == results
        assert format_times(results) == 'UTC 01:02:03'

import os
from types import SimpleNamespace
from unittest import mock

import pytest

from neonova import resources
from neonova.resources import CpuMonitor, IoMonitor, ResourceManager, ResourceUsage


def _sequence(values):
    it = iter(values)
    return lambda: next(it)


def test_cpu_first_sample_is_since_boot():
    monitor = CpuMonitor(sampler=lambda: (25.0, 100.0))
    assert monitor.get_usage() == pytest.approx(0.75)
    assert monitor.last_usage == pytest.approx(0.75)


def test_cpu_no_elapsed_time_gives_zero():
    monitor = CpuMonitor(sampler=lambda: (25.0, 100.0))
    monitor.get_usage()
    assert monitor.get_usage() == 0.0


def test_cpu_usage_within_bounds_with_real_sampler():
    usage = CpuMonitor().get_usage()
    assert 0.0 <= usage <= 1.0


def test_cpu_sampler_failure_falls_back():
    def broken():
        raise OSError("unavailable")

    monitor = CpuMonitor(sampler=_sequence([(25.0, 100.0)]))
    first = monitor.get_usage()
    monitor.sampler = broken
    assert monitor.get_usage() == first


def test_io_first_call_sets_baseline():
    monitor = IoMonitor(sampler=lambda: 1000, clock=lambda: 5.0)
    assert monitor.get_usage() == 0.0


def test_io_rate_scaled_to_full_scale():
    monitor = IoMonitor(
        sampler=_sequence([0, 500_000_000]), clock=_sequence([0.0, 1.0])
    )
    monitor.get_usage()
    assert monitor.get_usage() == pytest.approx(0.5)


def test_io_rate_capped_at_one():
    monitor = IoMonitor(
        sampler=_sequence([0, 5_000_000_000]), clock=_sequence([0.0, 1.0])
    )
    monitor.get_usage()
    assert monitor.get_usage() == 1.0


def test_io_missing_counters():
    monitor = IoMonitor(sampler=lambda: None, clock=lambda: 0.0)
    assert monitor.get_usage() == 0.0
    assert monitor.get_usage() == 0.0


def test_ram_usage_real_within_bounds():
    assert 0.0 <= resources.ram_usage() <= 1.0


def test_ram_usage_from_memory_figures():
    memory = SimpleNamespace(total=200, available=50)
    with mock.patch("neonova.resources.psutil.virtual_memory", return_value=memory):
        assert resources.ram_usage() == pytest.approx(0.75)


def test_gpu_usage_unavailable():
    assert resources.gpu_usage() == 0.0


def _manager(idle, total):
    return ResourceManager(
        cpu=CpuMonitor(sampler=lambda: (idle, total)),
        io=IoMonitor(sampler=lambda: 0, clock=lambda: 0.0),
        ram=lambda: 0.4,
        gpu=lambda: 0.2,
    )


def test_update_collects_every_resource():
    manager = _manager(50.0, 100.0)
    usage = manager.update()
    assert usage == ResourceUsage(cpu_usage=0.5, ram_usage=0.4, gpu_usage=0.2, io_usage=0.0)
    assert manager.get_usage() == usage


def test_get_usage_returns_copy():
    manager = _manager(50.0, 100.0)
    manager.update()
    copy = manager.get_usage()
    copy.cpu_usage = 1.0
    assert manager.get_usage().cpu_usage == 0.5


def test_scale_high_cpu():
    manager = _manager(5.0, 100.0)
    manager.update()
    assert manager.scale() == resources.LOWER_BACKGROUND_PRIORITY


def test_scale_low_cpu():
    manager = _manager(95.0, 100.0)
    manager.update()
    assert manager.scale() == resources.RESTORE_NORMAL_PRIORITY


def test_scale_moderate_cpu():
    manager = _manager(50.0, 100.0)
    manager.update()
    assert manager.scale() is None


def test_prioritize_returns_current_process():
    assert ResourceManager().prioritize() == os.getpid()


def test_power_adjust_on_battery():
    battery = SimpleNamespace(percent=50, secsleft=100, power_plugged=False)
    with mock.patch("neonova.resources.psutil.sensors_battery", return_value=battery, create=True):
        assert ResourceManager().power_adjust() is True


def test_power_adjust_plugged_in():
    battery = SimpleNamespace(percent=50, secsleft=100, power_plugged=True)
    with mock.patch("neonova.resources.psutil.sensors_battery", return_value=battery, create=True):
        assert ResourceManager().power_adjust() is False


def test_power_adjust_no_battery():
    with mock.patch("neonova.resources.psutil.sensors_battery", return_value=None, create=True):
        assert ResourceManager().power_adjust() is False
"""Tests for the mutation catalog and unit application."""

import logging
import threading

import pytest

from pc_optimizer.adapters.base import ServiceStatus, StartupMode
from pc_optimizer.adapters.service import ScServiceController
from pc_optimizer.adapters.simulated import SimulatedServiceController
from pc_optimizer.catalog import (
    BUILTIN_UNITS,
    DisableService,
    KeyIndicator,
    MutationCatalog,
    MutationUnit,
    RunCommand,
    SetValue,
    default_catalog,
)
from pc_optimizer.catalog.units import HIGH_PERFORMANCE_SCHEME, SERVICES_UNIT
from pc_optimizer.protocol.category import Category

from .mocks import FakeCommandRunner, FaultyConfigStore, host_state, make_adapters

TEST_PATH = r"HKEY_CURRENT_USER\Software\PcOptimizerTest"


def _unit(category, steps, unit_id=None):
    return MutationUnit(
        id=unit_id or category.label,
        category=category,
        description="test unit",
        steps=tuple(steps),
        indicator=KeyIndicator(TEST_PATH, "Indicator", 1),
    )


# =========================================================================
# Category
# =========================================================================

@pytest.mark.parametrize("text,expected", [
    ("cpu", Category.CPU),
    ("CPU", Category.CPU),
    ("windows-shell", Category.WINDOWS_SHELL),
    ("Game Specific", Category.GAME_SPECIFIC),
    (" storage ", Category.STORAGE),
])
def test_category_parse(text, expected):
    assert Category.parse(text) == expected


def test_category_parse_unknown_lists_valid_names():
    with pytest.raises(ValueError, match="game-specific"):
        Category.parse("turbo")


def test_category_label():
    assert Category.WINDOWS_SHELL.label == "windows-shell"


# =========================================================================
# Built-in catalog
# =========================================================================

def test_default_catalog_has_one_unit_per_category():
    catalog = default_catalog()
    assert len(catalog) == len(Category)
    assert catalog.categories() == list(Category)
    for category in Category:
        assert catalog.get(category).category == category


def test_default_catalog_units_touch_disjoint_keys():
    assert default_catalog().shared_keys() == {}


def test_unit_ids_are_unique():
    ids = [unit.id for unit in BUILTIN_UNITS]
    assert len(ids) == len(set(ids))


def test_services_unit_covers_stock_services():
    assert "SysMain" in SERVICES_UNIT.touched_services()
    assert len(SERVICES_UNIT.touched_services()) == 17


def test_timeout_budget_is_sum_of_steps():
    unit = _unit(Category.NETWORK, [
        RunCommand("netsh", ("a",), 10.0),
        RunCommand("netsh", ("b",), 10.0),
    ])
    assert unit.timeout_budget() == 20.0


def test_touched_keys_are_deduplicated_in_order():
    unit = _unit(Category.CPU, [
        SetValue(TEST_PATH, "A", 1),
        SetValue(TEST_PATH, "B", 1),
        SetValue(TEST_PATH, "A", 2),
    ])
    assert [k.name for k in unit.touched_keys()] == ["A", "B"]


def test_duplicate_category_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        MutationCatalog([_unit(Category.CPU, []), _unit(Category.CPU, [], unit_id="other")])


def test_shared_key_logs_warning(caplog):
    with caplog.at_level(logging.WARNING):
        catalog = MutationCatalog([
            _unit(Category.CPU, [SetValue(TEST_PATH, "Shared", 1)]),
            _unit(Category.MEMORY, [SetValue(TEST_PATH.upper(), "shared", 2)]),
        ])
    assert len(catalog.shared_keys()) == 1
    assert "touched by several units" in caplog.text


def test_select_unknown_category_rejected():
    catalog = MutationCatalog([_unit(Category.CPU, [])])
    with pytest.raises(ValueError):
        catalog.select([Category.POWER])


def test_select_returns_catalog_order_without_duplicates():
    catalog = default_catalog()
    units = catalog.select([Category.STORAGE, Category.CPU, Category.STORAGE])
    assert [u.category for u in units] == [Category.CPU, Category.STORAGE]


# =========================================================================
# Applying units
# =========================================================================

@pytest.mark.parametrize("unit", BUILTIN_UNITS, ids=lambda u: u.id)
def test_builtin_unit_applies_on_simulated_host(unit):
    adapters = make_adapters()
    result = unit.apply(adapters)
    assert result.success, result.detail
    assert result.unit_id == unit.id
    assert result.category == unit.category


@pytest.mark.parametrize("unit", BUILTIN_UNITS, ids=lambda u: u.id)
def test_builtin_unit_is_idempotent(unit):
    adapters = make_adapters()

    assert unit.apply(adapters).success
    once = host_state(adapters)
    scheme_once = adapters.commands.active_scheme

    assert unit.apply(adapters).success
    assert host_state(adapters) == once
    assert adapters.commands.active_scheme == scheme_once


def test_power_unit_activates_high_performance():
    adapters = make_adapters()
    default_catalog().get(Category.POWER).apply(adapters)
    assert adapters.commands.active_scheme == HIGH_PERFORMANCE_SCHEME


def test_unit_stops_at_first_failure_and_keeps_earlier_writes():
    denied = r"HKEY_LOCAL_MACHINE\SYSTEM\Locked"
    adapters = make_adapters(config_store=FaultyConfigStore(deny_writes=[denied]))
    unit = _unit(Category.CPU, [
        SetValue(TEST_PATH, "First", 1),
        SetValue(denied, "Second", 2),
        SetValue(TEST_PATH, "Third", 3),
    ])

    result = unit.apply(adapters)

    assert not result.success
    assert "step 2/3" in result.detail
    assert "Access denied" in result.detail
    assert adapters.config_store.get(TEST_PATH, "First") == 1
    assert adapters.config_store.get(TEST_PATH, "Third") is None


def test_disable_service_stops_running_service():
    adapters = make_adapters(service_table={
        "SysMain": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    })
    result = _unit(Category.SERVICES, [DisableService("SysMain")]).apply(adapters)

    assert result.success
    assert adapters.services.get_status("SysMain") == ServiceStatus.STOPPED
    assert adapters.services.get_startup_mode("SysMain") == StartupMode.DISABLED


def test_missing_service_is_skipped_not_failed():
    adapters = make_adapters(services=SimulatedServiceController(services={}))
    result = SERVICES_UNIT.apply(adapters)

    assert result.success
    assert "SysMain not installed" in result.detail


def test_non_zero_exit_fails_unit():
    adapters = make_adapters(commands=FakeCommandRunner(exit_codes={"schtasks": 1}))
    result = default_catalog().get(Category.STORAGE).apply(adapters)

    assert not result.success
    assert "schtasks exited with 1" in result.detail


def test_command_timeout_fails_unit():
    adapters = make_adapters(commands=FakeCommandRunner(hang=["netsh"]))
    unit = _unit(Category.NETWORK, [
        SetValue(TEST_PATH, "Before", 1),
        RunCommand("netsh", ("int", "tcp", "show", "global"), 0.1),
    ])

    result = unit.apply(adapters)

    assert not result.success
    assert "Timed out" in result.detail
    assert adapters.config_store.get(TEST_PATH, "Before") == 1


def test_cancelled_batch_skips_remaining_steps():
    adapters = make_adapters()
    adapters.cancel_event.set()
    result = _unit(Category.CPU, [SetValue(TEST_PATH, "A", 1)]).apply(adapters)

    assert not result.success
    assert "cancelled before step 1/1" in result.detail
    assert adapters.config_store.get(TEST_PATH, "A") is None


def test_cancel_terminates_running_command():
    adapters = make_adapters(commands=FakeCommandRunner(hang=["powershell"]))
    unit = _unit(Category.MEMORY, [RunCommand("powershell", ("-Command", "x"), 30.0)])

    timer = threading.Timer(0.1, adapters.cancel_event.set)
    timer.start()
    try:
        result = unit.apply(adapters)
    finally:
        timer.cancel()

    assert not result.success
    assert "Cancelled" in result.detail
    assert result.duration_seconds < 5


def test_cancel_interrupts_hanging_service_call():
    adapters = make_adapters(services=ScServiceController(FakeCommandRunner(hang=["sc.exe"])))
    unit = _unit(Category.SERVICES, [DisableService("SysMain")])

    timer = threading.Timer(0.2, adapters.cancel_event.set)
    timer.start()
    try:
        result = unit.apply(adapters)
    finally:
        timer.cancel()

    assert not result.success
    assert "Cancelled" in result.detail
    assert result.duration_seconds < 5

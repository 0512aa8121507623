"""
The built-in mutation catalog.

One unit per category. No two units write the same registry value, and no
unit relies on another having run first, so any subset can be applied
concurrently.
"""

from typing import Tuple

from .models import (
    DisableService,
    KeyIndicator,
    MutationCatalog,
    MutationUnit,
    PowerSchemeIndicator,
    RunCommand,
    ServiceIndicator,
    SetValue,
)
from ..protocol.category import Category


HKLM = "HKEY_LOCAL_MACHINE"
HKCU = "HKEY_CURRENT_USER"

PRIORITY_CONTROL = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\PriorityControl"
POWER_CONTROL = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\Power"
SESSION_MANAGER = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\Session Manager"
MEMORY_MANAGEMENT = rf"{SESSION_MANAGER}\Memory Management"
GRAPHICS_DRIVERS = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\GraphicsDrivers"
TCPIP_PARAMETERS = rf"{HKLM}\SYSTEM\CurrentControlSet\Services\Tcpip\Parameters"
FILE_SYSTEM = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\FileSystem"
MOUHID_PARAMETERS = rf"{HKLM}\SYSTEM\CurrentControlSet\Services\mouhid\Parameters"
CONTENT_INDEX = rf"{HKLM}\SYSTEM\CurrentControlSet\Control\ContentIndex"
GAMES_PROFILE = rf"{HKLM}\SOFTWARE\Microsoft\Windows NT\CurrentVersion\Multimedia\SystemProfile\Tasks\Games"
DWM = rf"{HKLM}\SOFTWARE\Microsoft\Windows\Dwm"
DELIVERY_OPTIMIZATION = rf"{HKLM}\SOFTWARE\Microsoft\Windows\CurrentVersion\DeliveryOptimization\Config"
DATA_COLLECTION = rf"{HKLM}\SOFTWARE\Policies\Microsoft\Windows\DataCollection"
WINDOWS_UPDATE_AU = rf"{HKLM}\SOFTWARE\Policies\Microsoft\Windows\WindowsUpdate\AU"

GAME_BAR = rf"{HKCU}\SOFTWARE\Microsoft\GameBar"
GAME_DVR = rf"{HKCU}\SOFTWARE\Microsoft\Windows\CurrentVersion\GameDVR"
GAME_CONFIG_STORE = rf"{HKCU}\System\GameConfigStore"
BACKGROUND_APPS = rf"{HKCU}\SOFTWARE\Microsoft\Windows\CurrentVersion\BackgroundAccessApplications"
VISUAL_EFFECTS = rf"{HKCU}\SOFTWARE\Microsoft\Windows\CurrentVersion\Explorer\VisualEffects"
DESKTOP = rf"{HKCU}\Control Panel\Desktop"
WINDOW_METRICS = rf"{HKCU}\Control Panel\Desktop\WindowMetrics"
MOUSE = rf"{HKCU}\Control Panel\Mouse"
KEYBOARD = rf"{HKCU}\Control Panel\Keyboard"
KEYBOARD_RESPONSE = rf"{HKCU}\Control Panel\Accessibility\Keyboard Response"
AUDIO = rf"{HKCU}\SOFTWARE\Microsoft\Multimedia\Audio"

# Power schemes
HIGH_PERFORMANCE_SCHEME = "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c"
ULTIMATE_PERFORMANCE_SCHEME = "e9a42b02-d5df-448d-aa00-03f14749eb61"

# Power setting (subgroup, setting) pairs
USB_SELECTIVE_SUSPEND = ("2a737441-1930-4402-8d77-b2bebba308a3", "48e6b7a6-50f5-4782-a5d4-53bb8f07e226")
PCIE_LINK_STATE = ("501a4d13-42af-4429-9fd1-a8218c268e20", "ee12f906-d277-404b-b6da-e5fa1a576df5")
PROCESSOR_IDLE_DISABLE = ("54533251-82be-4824-96c1-47b60b740d00", "5d76a2ca-e8c0-402f-a133-2158492d58ad")
PROCESSOR_MAX_STATE = ("54533251-82be-4824-96c1-47b60b740d00", "bc5038f7-23e0-4960-96da-33abaf5935ec")

# Services that compete with games for CPU and disk
DISABLED_SERVICES = (
    "SysMain",            # SuperFetch, causes stutter
    "WSearch",            # indexing disk I/O
    "Spooler",
    "Fax",
    "TabletInputService",
    "WbioSrvc",
    "WMPNetworkSvc",
    "XblAuthManager",
    "XblGameSave",
    "XboxNetApiSvc",
    "XboxGipSvc",
    "MapsBroker",
    "lfsvc",
    "DiagTrack",
    "dmwappushservice",
    "TrkWks",
    "WerSvc",
)

POWERCFG_TIMEOUT = 10.0
SERVICE_STOP_TIMEOUT = 30.0


def _power_setting(setting: Tuple[str, str], value: int) -> Tuple[RunCommand, RunCommand]:
    """AC and DC writes of one power setting on the active scheme."""
    subgroup, guid = setting
    return (
        RunCommand("powercfg", ("/setacvalueindex", "SCHEME_CURRENT", subgroup, guid, str(value)), POWERCFG_TIMEOUT),
        RunCommand("powercfg", ("/setdcvalueindex", "SCHEME_CURRENT", subgroup, guid, str(value)), POWERCFG_TIMEOUT),
    )


CPU_UNIT = MutationUnit(
    id="cpu-scheduling",
    category=Category.CPU,
    description="Favour foreground programs and disable connected-standby throttling",
    steps=(
        SetValue(PRIORITY_CONTROL, "Win32PrioritySeparation", 38),
        SetValue(POWER_CONTROL, "CsEnabled", 0),
        SetValue(SESSION_MANAGER, "HeapDeCommitFreeBlockThreshold", 0x40000),
    ),
    indicator=KeyIndicator(PRIORITY_CONTROL, "Win32PrioritySeparation", 38),
)

MEMORY_UNIT = MutationUnit(
    id="memory-management",
    category=Category.MEMORY,
    description="Keep kernel code resident and disable memory compression",
    steps=(
        SetValue(MEMORY_MANAGEMENT, "LargeSystemCache", 0),
        SetValue(MEMORY_MANAGEMENT, "DisablePagingExecutive", 1),
        SetValue(MEMORY_MANAGEMENT, "ClearPageFileAtShutdown", 0),
        SetValue(MEMORY_MANAGEMENT, "IoPageLockLimit", 0x4000000),
        RunCommand(
            "powershell",
            ("-NoProfile", "-NonInteractive", "-Command", "Disable-MMAgent -MemoryCompression"),
            60.0,
        ),
    ),
    indicator=KeyIndicator(MEMORY_MANAGEMENT, "DisablePagingExecutive", 1),
)

GRAPHICS_UNIT = MutationUnit(
    id="graphics-driver",
    category=Category.GRAPHICS,
    description="Hardware GPU scheduling on, TDR relaxed, Game DVR capture off",
    steps=(
        SetValue(GRAPHICS_DRIVERS, "HwSchMode", 2),
        SetValue(GRAPHICS_DRIVERS, "TdrLevel", 0),
        SetValue(GRAPHICS_DRIVERS, "TdrDelay", 60),
        SetValue(GAME_CONFIG_STORE, "GameDVR_Enabled", 0),
        SetValue(GAME_DVR, "AppCaptureEnabled", 0),
        SetValue(GAME_DVR, "GameDVR_Enabled", 0),
    ),
    indicator=KeyIndicator(GRAPHICS_DRIVERS, "HwSchMode", 2),
)

NETWORK_UNIT = MutationUnit(
    id="network-stack",
    category=Category.NETWORK,
    description="Disable Nagle and delayed ACKs, normal TCP autotuning with RSS",
    steps=(
        SetValue(TCPIP_PARAMETERS, "TcpAckFrequency", 1),
        SetValue(TCPIP_PARAMETERS, "TCPNoDelay", 1),
        SetValue(TCPIP_PARAMETERS, "TcpDelAckTicks", 0),
        SetValue(TCPIP_PARAMETERS, "EnableWsd", 0),
        RunCommand("netsh", ("int", "tcp", "set", "global", "autotuninglevel=normal"), 10.0),
        RunCommand("netsh", ("int", "tcp", "set", "global", "rss=enabled"), 10.0),
    ),
    indicator=KeyIndicator(TCPIP_PARAMETERS, "TCPNoDelay", 1),
)

WINDOWS_SHELL_UNIT = MutationUnit(
    id="windows-shell",
    category=Category.WINDOWS_SHELL,
    description="Game Mode on, background apps, animations and telemetry off",
    steps=(
        SetValue(GAME_BAR, "AutoGameModeEnabled", 1),
        SetValue(GAME_BAR, "AllowAutoGameMode", 1),
        SetValue(GAME_BAR, "ShowStartupPanel", 0),
        SetValue(GAME_BAR, "UseNexusForGameBarEnabled", 0),
        SetValue(BACKGROUND_APPS, "GlobalUserDisabled", 1),
        SetValue(VISUAL_EFFECTS, "VisualFXSetting", 2),
        SetValue(DESKTOP, "MenuShowDelay", "0"),
        SetValue(WINDOW_METRICS, "MinAnimate", "0"),
        SetValue(CONTENT_INDEX, "FilterFilesWithUnknownExtensions", 0),
        SetValue(DELIVERY_OPTIMIZATION, "DODownloadMode", 0),
        SetValue(DATA_COLLECTION, "AllowTelemetry", 0),
        SetValue(WINDOWS_UPDATE_AU, "NoAutoRebootWithLoggedOnUsers", 1),
        RunCommand("bcdedit", ("/set", "useplatformclock", "true"), 15.0),
    ),
    indicator=KeyIndicator(GAME_BAR, "AutoGameModeEnabled", 1),
)

SERVICES_UNIT = MutationUnit(
    id="background-services",
    category=Category.SERVICES,
    description="Stop and disable services that compete with games",
    steps=tuple(DisableService(name, SERVICE_STOP_TIMEOUT) for name in DISABLED_SERVICES),
    indicator=ServiceIndicator("SysMain"),
)

POWER_UNIT = MutationUnit(
    id="power-plan",
    category=Category.POWER,
    description="High performance plan, no USB/PCIe power saving, CPU at full clock",
    steps=(
        RunCommand("powercfg", ("/setactive", HIGH_PERFORMANCE_SCHEME), POWERCFG_TIMEOUT),
        *_power_setting(USB_SELECTIVE_SUSPEND, 0),
        *_power_setting(PCIE_LINK_STATE, 0),
        *_power_setting(PROCESSOR_IDLE_DISABLE, 0),
        *_power_setting(PROCESSOR_MAX_STATE, 100),
        RunCommand("powercfg", ("/setactive", "SCHEME_CURRENT"), POWERCFG_TIMEOUT),
    ),
    indicator=PowerSchemeIndicator((HIGH_PERFORMANCE_SCHEME, ULTIMATE_PERFORMANCE_SCHEME)),
)

STORAGE_UNIT = MutationUnit(
    id="storage",
    category=Category.STORAGE,
    description="No NTFS last-access or 8.3 names, scheduled defrag off",
    steps=(
        SetValue(FILE_SYSTEM, "NtfsDisableLastAccessUpdate", 1),
        SetValue(FILE_SYSTEM, "NtfsDisable8dot3NameCreation", 1),
        RunCommand("schtasks", ("/Change", "/TN", r"\Microsoft\Windows\Defrag\ScheduledDefrag", "/Disable"), 30.0),
    ),
    indicator=KeyIndicator(FILE_SYSTEM, "NtfsDisableLastAccessUpdate", 1),
)

GAME_SPECIFIC_UNIT = MutationUnit(
    id="game-specific",
    category=Category.GAME_SPECIFIC,
    description="Multimedia game priority, raw mouse and fast keyboard input",
    steps=(
        SetValue(GAMES_PROFILE, "GPU Priority", 8),
        SetValue(GAMES_PROFILE, "Priority", 6),
        SetValue(GAMES_PROFILE, "Scheduling Category", "High"),
        SetValue(GAMES_PROFILE, "SFIO Priority", "High"),
        SetValue(MOUSE, "MouseSpeed", "0"),
        SetValue(MOUSE, "MouseThreshold1", "0"),
        SetValue(MOUSE, "MouseThreshold2", "0"),
        SetValue(MOUHID_PARAMETERS, "MouseDataQueueSize", 0x64),
        SetValue(KEYBOARD, "KeyboardDelay", "0"),
        SetValue(KEYBOARD, "KeyboardSpeed", "31"),
        SetValue(KEYBOARD_RESPONSE, "Flags", "0"),
        SetValue(DWM, "OverlayTestMode", 5),
        SetValue(AUDIO, "UserSimulatedStereoOn", 0),
    ),
    indicator=KeyIndicator(GAMES_PROFILE, "GPU Priority", 8),
)

BUILTIN_UNITS = (
    CPU_UNIT,
    MEMORY_UNIT,
    GRAPHICS_UNIT,
    NETWORK_UNIT,
    WINDOWS_SHELL_UNIT,
    SERVICES_UNIT,
    POWER_UNIT,
    STORAGE_UNIT,
    GAME_SPECIFIC_UNIT,
)


def default_catalog() -> MutationCatalog:
    """The catalog of built-in units, one per Category."""
    return MutationCatalog(BUILTIN_UNITS)

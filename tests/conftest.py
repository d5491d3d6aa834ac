"""
Pytest configuration and shared test utilities.

Provides an isolated working directory for every test and a
:class:`FakeMachine` that seeds an in-memory store together with the runtime
and IDE directories its keys point at.
"""

import struct
from pathlib import Path

import pytest

from registrar.config_models import InstallerConfig, InstallFlags
from registrar.store.backends import MemoryBackend, Scope
from registrar.store.store import ConfigurationStore, root_key_name
from registrar.utils.config import reset_config
from registrar.utils.logger import detach_trace_files

RUNTIME_ROOT = root_key_name(per_user=False, wow64=False)
IDE_ROOT = root_key_name(per_user=False, wow64=True)

# Every store-backed surface; no external tools are launched
REGISTRY_FLAGS = (
    InstallFlags.ASSEMBLY_FOLDERS
    | InstallFlags.DB_PROVIDER_FACTORY
    | InstallFlags.VS_PACKAGE
    | InstallFlags.VS_DATA_SOURCE
    | InstallFlags.VS_DATA_PROVIDER
)

MACHINE_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<configuration>
  <!-- runtime defaults -->
  <system.data>
    <DbProviderFactories>
      <add name="Odbc Data Provider" invariant="System.Data.Odbc" description=".Net Framework Data Provider for Odbc" type="System.Data.Odbc.OdbcFactory, System.Data" />
    </DbProviderFactories>
  </system.data>
</configuration>
"""


# ===================================================================
# Isolation
# ===================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test in its own directory with no configuration file in reach."""
    monkeypatch.delenv("REGISTRAR_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()
    detach_trace_files()


# ===================================================================
# Managed images
# ===================================================================

# The ECMA standard public key and its well-known token
ECMA_PUBLIC_KEY = bytes.fromhex("00000000000000000400000000000000")
ECMA_PUBLIC_KEY_TOKEN = "b77a5c561934e089"
PROVIDER_VERSION = "1.0.89.0"


def _pad(data: bytes) -> bytes:
    return data + b"\0" * (-len(data) % 4)


def _stream_header(offset: int, size: int, name: str) -> bytes:
    return struct.pack("<II", offset, size) + _pad(name.encode() + b"\0")


def build_metadata(
    runtime_version: str,
    name: str,
    version: str,
    public_key: bytes,
    culture: str = "",
) -> bytes:
    """Metadata root with a ``#~`` stream holding one Module and one Assembly row."""
    strings = bytearray(b"\0")
    name_index = len(strings)
    strings += name.encode() + b"\0"
    culture_index = 0
    if culture:
        culture_index = len(strings)
        strings += culture.encode() + b"\0"

    blob = bytearray(b"\0")
    key_index = 0
    if public_key:
        key_index = len(blob)
        blob += bytes([len(public_key)]) + public_key

    tables = struct.pack("<IBBBBQQ", 0, 2, 0, 0, 1, 1 << 0x00 | 1 << 0x20, 0)
    tables += struct.pack("<II", 1, 1)
    tables += struct.pack("<HHHHH", 0, name_index, 0, 0, 0)
    tables += struct.pack(
        "<IHHHHIHHH",
        0x8004,
        *(int(part) for part in version.split(".")),
        0x0001 if public_key else 0,
        key_index,
        name_index,
        culture_index,
    )
    streams = [
        ("#~", _pad(tables)),
        ("#Strings", _pad(bytes(strings))),
        ("#Blob", _pad(bytes(blob))),
    ]

    version_string = _pad(runtime_version.encode() + b"\0")
    root = struct.pack("<IHHII", 0x424A5342, 1, 1, 0, len(version_string)) + version_string
    root += struct.pack("<HH", 0, len(streams))
    offset = len(root) + sum(len(_stream_header(0, 0, n)) for n, _ in streams)
    for stream_name, data in streams:
        root += _stream_header(offset, len(data), stream_name)
        offset += len(data)
    return root + b"".join(data for _, data in streams)


def build_managed_image(
    runtime_version: str = "v4.0.30319",
    name: str = "System.Data.SQLite",
    version: str = PROVIDER_VERSION,
    public_key: bytes = ECMA_PUBLIC_KEY,
    culture: str = "",
) -> bytes:
    """Return the smallest PE32 image that carries CLI metadata for one assembly.

    Layout: DOS header, PE header with one section at RVA 0x2000 (file offset
    0x200), the CLI header at the start of that section and the metadata root
    0x100 bytes into it.
    """
    metadata = build_metadata(runtime_version, name, version, public_key, culture)
    size = 0x300 + len(metadata)
    size += -size % 0x200

    image = bytearray(size)
    image[0:2] = b"MZ"
    struct.pack_into("<I", image, 0x3C, 0x40)
    image[0x40:0x44] = b"PE\0\0"

    coff = 0x44
    struct.pack_into("<H", image, coff + 2, 1)
    struct.pack_into("<H", image, coff + 16, 224)

    optional = coff + 20
    struct.pack_into("<H", image, optional, 0x10B)
    struct.pack_into("<I", image, optional + 92, 16)
    struct.pack_into("<II", image, optional + 96 + 8 * 14, 0x2000, 72)

    section = optional + 224
    image[section : section + 8] = b".text\0\0\0"
    struct.pack_into("<IIII", image, section + 8, size - 0x200, 0x2000, size - 0x200, 0x200)

    cli = 0x200
    struct.pack_into("<II", image, cli + 8, 0x2100, len(metadata))
    image[0x300 : 0x300 + len(metadata)] = metadata
    return bytes(image)


# ===================================================================
# Fake machine
# ===================================================================


# File name -> assembly name of the provider files in the bin directory
ASSEMBLY_FILES = {
    "System.Data.SQLite.dll": "System.Data.SQLite",
    "System.Data.SQLite.Linq.dll": "System.Data.SQLite.Linq",
    "SQLite.Designer.dll": "SQLite.Designer",
}


class FakeMachine:
    """An in-memory store seeded like a Windows machine, plus real directories.

    Probes check directories on disk, so every install directory a key points
    at is created below ``base``.
    """

    def __init__(self, base: Path, runtime_version: str = "v4.0.30319"):
        self.base = base
        self.backend = MemoryBackend()
        self.bin_directory = base / "bin"
        self.framework_directory = base / "Framework"
        self.system_directory = base / "System32"
        for directory in (self.bin_directory, self.framework_directory, self.system_directory):
            directory.mkdir(parents=True, exist_ok=True)
        for file_name, assembly in ASSEMBLY_FILES.items():
            (self.bin_directory / file_name).write_bytes(
                build_managed_image(runtime_version, assembly)
            )
        self.backend.add_key(
            Scope.LOCAL_MACHINE,
            f"{RUNTIME_ROOT}\\Microsoft\\.NETFramework",
            {"InstallRoot": str(self.framework_directory)},
        )

    def add_runtime(self, version: str = "v4.0.30319", machine_config: bool = True) -> Path:
        """Seed a desktop runtime; returns its machine.config path."""
        self.backend.add_key(
            Scope.LOCAL_MACHINE, f"{RUNTIME_ROOT}\\Microsoft\\.NETFramework\\{version}"
        )
        config_directory = self.framework_directory / version / "Config"
        config_directory.mkdir(parents=True, exist_ok=True)
        path = config_directory / "machine.config"
        if machine_config:
            path.write_text(MACHINE_CONFIG, encoding="utf-8")
        return path

    def add_compact(self, version: str = "v2.0.0.0", platform: str = "PocketPC") -> None:
        self.backend.add_key(
            Scope.LOCAL_MACHINE,
            f"{RUNTIME_ROOT}\\Microsoft\\.NETCompactFramework\\{version}\\{platform}",
        )

    def add_ide(self, version: str = "10.0") -> Path:
        """Seed an IDE with the subkeys a real installation carries."""
        install_directory = self.base / f"VS{version}" / "Common7" / "IDE"
        install_directory.mkdir(parents=True, exist_ok=True)
        key = f"{IDE_ROOT}\\Microsoft\\VisualStudio\\{version}"
        self.backend.add_key(Scope.LOCAL_MACHINE, key, {"InstallDir": str(install_directory)})
        for name in ("Packages", "Menus", "Services", "DataSources", "DataProviders"):
            self.backend.add_key(Scope.LOCAL_MACHINE, f"{key}\\{name}")
        return install_directory

    def lookup(self, path: str) -> dict | None:
        return self.backend.lookup(Scope.LOCAL_MACHINE, path)

    def snapshot(self) -> dict:
        return self.backend.snapshot()

    def config(self, **overrides) -> InstallerConfig:
        settings = {
            "confirm": True,
            "simulate": False,
            "directory": self.bin_directory,
            "system_directory": self.system_directory,
            "install_flags": REGISTRY_FLAGS,
        }
        settings.update(overrides)
        return InstallerConfig(**settings)

    def store(self, simulate: bool = False, **kwargs) -> ConfigurationStore:
        return ConfigurationStore(self.backend, simulate=simulate, **kwargs)


@pytest.fixture
def machine(tmp_path):
    """A machine with .NET 4.0 (with machine.config), one compact platform and VS 2010."""
    fake = FakeMachine(tmp_path / "machine")
    fake.add_runtime("v4.0.30319")
    fake.add_compact("v2.0.0.0", "PocketPC")
    fake.add_ide("10.0")
    return fake

"""Target catalog: the runtime and IDE versions a run may register with.

The catalog is built once per run from the finalized configuration. It holds
the raw lists the matrix engine validates (family names paired positionally
with platform names, a version list per family, the IDE versions) and
derives the ordered :class:`RuntimeTarget` and :class:`IdeTarget` sequences
from them. Suppressed entries are left out entirely.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from registrar.store.handle import StoreHandle

from .targets import COMPACT_FAMILY, DESKTOP_FAMILY, IdeTarget, RuntimeTarget, Version

# (version, suppression flag), oldest first
DESKTOP_VERSIONS = (
    (Version((2, 0, 50727)), "no_netfx20"),
    (Version((3, 5)), "no_netfx35"),
    (Version((4, 0, 30319)), "no_netfx40"),
    (Version((4, 5, 50709)), "no_netfx45"),
    (Version((4, 5, 1)), "no_netfx451"),
)

COMPACT_VERSIONS = (Version((2, 0, 0, 0)), Version((3, 5, 0, 0)))

COMPACT_PLATFORMS = ("PocketPC", "Smartphone", "WindowsCE")

# (version, release year, suppression flag), oldest first
IDE_VERSIONS = (
    (Version((8, 0)), 2005, "no_vs2005"),
    (Version((9, 0)), 2008, "no_vs2008"),
    (Version((10, 0)), 2010, "no_vs2010"),
    (Version((11, 0)), 2012, "no_vs2012"),
    (Version((12, 0)), 2013, "no_vs2013"),
)


@dataclass(frozen=True)
class TargetCatalog:
    """Runtime and IDE targets for one run.

    :param root: Hive handle every target key is resolved against
    :param family_names: Runtime family per slot, desktop first
    :param platform_names: Platform per slot, paired with ``family_names``
    :param versions: Version list per family name, oldest first
    :param ide_versions: IDE versions, oldest first
    :param ide_suffix: Optional IDE hive suffix applied to every IDE target

    The list fields may be None only in hand-built catalogs; the matrix
    engine rejects such a catalog before iterating it.
    """

    root: StoreHandle | None
    family_names: tuple[str, ...] | None = ()
    platform_names: tuple[str | None, ...] | None = ()
    versions: Mapping[str, tuple[Version, ...]] | None = field(default_factory=dict)
    ide_versions: tuple[Version, ...] | None = ()
    ide_suffix: str | None = None

    def __post_init__(self):
        if self.versions is not None:
            object.__setattr__(
                self,
                "versions",
                MappingProxyType({name: tuple(v) for name, v in self.versions.items()}),
            )

    def with_runtime_override(self, version: "str | Version | None") -> "TargetCatalog":
        """Return a catalog whose every family has exactly ``version``; self when None."""
        if version is None:
            return self
        pinned = Version.parse(version)
        versions = {name: (pinned,) for name in dict.fromkeys(self.family_names)}
        return replace(self, versions=versions)

    def with_ide_override(self, version: "str | Version | None") -> "TargetCatalog":
        if version is None:
            return self
        return replace(self, ide_versions=(Version.parse(version),))

    def runtime_targets(self, desktop_only: bool = False) -> list[RuntimeTarget]:
        """Runtime targets in slot order, then version order.

        Slots whose family has no version list are skipped.
        """
        targets = []
        for family, platform in zip(self.family_names, self.platform_names):
            if desktop_only and platform is not None:
                continue
            for version in self.versions.get(family, ()):
                targets.append(RuntimeTarget(family, version, platform))
        return targets

    def ide_targets(self) -> list[IdeTarget]:
        return [IdeTarget(version, self.ide_suffix) for version in self.ide_versions]


def build_catalog(config, root: StoreHandle | None) -> TargetCatalog:
    """Derive the catalog from a finalized :class:`~registrar.config_models.InstallerConfig`.

    Args:
        config: Finalized installer configuration (its suppression flags are read)
        root: Hive handle for the configured scope
    """
    family_names: list[str] = []
    platform_names: list[str | None] = []
    versions: dict[str, tuple[Version, ...]] = {}

    if not config.no_desktop:
        family_names.append(DESKTOP_FAMILY)
        platform_names.append(None)
        versions[DESKTOP_FAMILY] = tuple(
            version for version, flag in DESKTOP_VERSIONS if not getattr(config, flag)
        )

    if not config.no_compact:
        for platform in COMPACT_PLATFORMS:
            family_names.append(COMPACT_FAMILY)
            platform_names.append(platform)
        versions[COMPACT_FAMILY] = COMPACT_VERSIONS

    ide_versions = tuple(version for version, _, flag in IDE_VERSIONS if not getattr(config, flag))

    catalog = TargetCatalog(
        root=root,
        family_names=tuple(family_names),
        platform_names=tuple(platform_names),
        versions=versions,
        ide_versions=ide_versions,
        ide_suffix=config.ide_version_suffix,
    )
    return catalog.with_ide_override(config.ide_version)


def ide_year(version: Version) -> int | None:
    for known, year, _ in IDE_VERSIONS:
        if known == version:
            return year
    return None

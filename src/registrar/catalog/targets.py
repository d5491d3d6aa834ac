"""Target descriptors: immutable value objects for runtime and IDE targets."""

from dataclasses import dataclass
from enum import Enum
from functools import total_ordering


class TargetKind(Enum):
    RUNTIME = "runtime"
    IDE = "ide"


DESKTOP_FAMILY = ".NETFramework"
COMPACT_FAMILY = ".NETCompactFramework"
IDE_PRODUCT = "VisualStudio"


@total_ordering
@dataclass(frozen=True)
class Version:
    """Dotted numeric version such as ``2.0.50727`` or ``4.5.1``.

    Versions compare numerically, so ``4.5.1`` sorts after ``4.5.0``, and
    render exactly as parsed (``2.0`` stays ``2.0``).
    """

    parts: tuple[int, ...]

    def __post_init__(self):
        if not 2 <= len(self.parts) <= 4 or any(p < 0 for p in self.parts):
            raise ValueError(f"invalid version: {'.'.join(map(str, self.parts))}")

    @classmethod
    def parse(cls, text: "str | Version") -> "Version":
        if isinstance(text, Version):
            return text
        cleaned = str(text).strip()
        if cleaned[:1] in ("v", "V"):
            cleaned = cleaned[1:]
        try:
            return cls(tuple(int(part) for part in cleaned.split(".")))
        except ValueError as e:
            raise ValueError(f"invalid version: {text}") from e

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        width = max(len(self.parts), len(other.parts))
        return self.parts + (0,) * (width - len(self.parts)) < other.parts + (0,) * (
            width - len(other.parts)
        )

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)

    @property
    def key(self) -> str:
        """Store key segment, e.g. ``v2.0.50727``."""
        return f"v{self}"


@dataclass(frozen=True)
class RuntimeTarget:
    """One runtime family at one version, optionally for one device platform.

    A target without a platform is a desktop target; only desktop targets
    have machine configuration files.
    """

    family: str
    version: Version
    platform: str | None = None

    @property
    def kind(self) -> TargetKind:
        return TargetKind.RUNTIME

    @property
    def is_desktop(self) -> bool:
        return self.platform is None

    def key_name(self, root_name: str) -> str:
        """``<root>\\Microsoft\\<family>\\v<version>[\\<platform>]``."""
        name = f"{root_name}\\Microsoft\\{self.family}\\{self.version.key}"
        return f"{name}\\{self.platform}" if self.platform else name

    def __str__(self) -> str:
        text = f"{self.family} {self.version.key}"
        return f"{text} ({self.platform})" if self.platform else text


@dataclass(frozen=True)
class IdeTarget:
    """One IDE version, optionally qualified by a registry hive suffix (e.g. ``Exp``)."""

    version: Version
    suffix: str | None = None

    @property
    def kind(self) -> TargetKind:
        return TargetKind.IDE

    def key_name(self, root_name: str) -> str:
        """``<root>\\Microsoft\\VisualStudio\\<version><suffix>``."""
        return f"{root_name}\\Microsoft\\{IDE_PRODUCT}\\{self.version}{self.suffix or ''}"

    def __str__(self) -> str:
        return f"Visual Studio {self.version}{self.suffix or ''}"

"""Result and counter types shared by the store, the engine and the operations.

Counters are plain diagnostic telemetry. They are created fresh for every
operation invocation, returned to the matrix engine inside an
:class:`OperationResult`, merged into a :class:`MatrixResult` and finally
summed by the orchestrator for the end-of-run summary. Nothing in the
control flow ever branches on a counter value.

Type Structure:
    - **StoreCounters**: Keys created/deleted and values set/deleted
    - **FileCounters**: Configuration files created/modified/deleted
    - **OperationResult**: Outcome of one operation on one target
    - **MatrixResult**: Aggregated outcome of one registration surface
"""

from dataclasses import dataclass, field, fields


@dataclass
class StoreCounters:
    """Tally of configuration store mutations, real or simulated.

    Every modeled write increments its counter whether or not it reached the
    persistent store, so a simulated run reports the same numbers as the
    real run would from the same starting state.
    """

    nodes_created: int = 0
    nodes_deleted: int = 0
    values_set: int = 0
    values_deleted: int = 0

    def merge(self, other: "StoreCounters") -> "StoreCounters":
        """Add another tally into this one in place and return self."""
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def __add__(self, other: "StoreCounters") -> "StoreCounters":
        return StoreCounters().merge(self).merge(other)

    @property
    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def summary(self) -> str:
        return ", ".join(f"{f.name} = {getattr(self, f.name)}" for f in fields(self))


@dataclass
class FileCounters:
    """Tally of configuration file changes."""

    files_created: int = 0
    files_modified: int = 0
    files_deleted: int = 0

    def merge(self, other: "FileCounters") -> "FileCounters":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def __add__(self, other: "FileCounters") -> "FileCounters":
        return FileCounters().merge(self).merge(other)

    def summary(self) -> str:
        return ", ".join(f"{f.name} = {getattr(self, f.name)}" for f in fields(self))


@dataclass
class OperationResult:
    """Outcome of one registration operation against one target.

    :param success: Whether the operation completed
    :param error: Human readable failure message, None on success
    :param side_effect: Whether persistent state differs (or, when simulating,
        would differ) from what it was before the operation ran
    :param counters: Store mutations issued by the operation
    :param files: Configuration file changes issued by the operation
    """

    success: bool
    error: str | None = None
    side_effect: bool = False
    counters: StoreCounters = field(default_factory=StoreCounters)
    files: FileCounters = field(default_factory=FileCounters)

    @classmethod
    def ok(
        cls,
        side_effect: bool = False,
        counters: StoreCounters | None = None,
        files: FileCounters | None = None,
    ) -> "OperationResult":
        return cls(
            success=True,
            side_effect=side_effect,
            counters=counters or StoreCounters(),
            files=files or FileCounters(),
        )

    @classmethod
    def failed(cls, error: str, counters: StoreCounters | None = None) -> "OperationResult":
        return cls(success=False, error=error, counters=counters or StoreCounters())


@dataclass
class MatrixResult:
    """Aggregated outcome of running one operation across a target catalog.

    ``invoked`` lists the display names of the targets whose operation was
    called, in call order. It is meant for diagnostics and tests.
    """

    success: bool
    error: str | None = None
    changed: bool = False
    counters: StoreCounters = field(default_factory=StoreCounters)
    files: FileCounters = field(default_factory=FileCounters)
    invoked: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, error: str) -> "MatrixResult":
        return cls(success=False, error=error)

    def absorb(self, result: OperationResult) -> None:
        """Fold a single operation result into this aggregate."""
        self.counters.merge(result.counters)
        self.files.merge(result.files)
        if result.side_effect:
            self.changed = True

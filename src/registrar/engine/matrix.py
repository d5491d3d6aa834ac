"""Matrix engine: run one registration operation across every installed target.

The engine is stateless. Each :meth:`MatrixEngine.run` call validates the
catalog, expands it into targets, asks the presence probe about each one and
invokes the operation for the targets that are installed. The first failing
operation stops the run and its message is returned unchanged.

Expected conditions are reported through :class:`MatrixResult`. Native
store failures raised while probing or operating are reported the same way.
Contract violations (a closed root, a write through a read-only store)
propagate as exceptions.
"""

from collections.abc import Callable
from typing import Any

from registrar.base.errors import DisposedHandleError, StoreError
from registrar.base.results import MatrixResult, OperationResult
from registrar.catalog.catalog import TargetCatalog
from registrar.catalog.targets import TargetKind, Version
from registrar.utils.logger import get_logger

from .context import OperationContext
from .probes import Presence, PresenceProbe

logger = get_logger("engine")

OperationCallback = Callable[[Any, Presence, OperationContext], OperationResult]


class MatrixEngine:
    """Iterates a :class:`TargetCatalog` on behalf of one registration surface."""

    def run(
        self,
        catalog: TargetCatalog | None,
        probe: PresenceProbe,
        callback: OperationCallback,
        context: OperationContext,
        version: "str | Version | None" = None,
    ) -> MatrixResult:
        """Invoke ``callback`` for every target ``probe`` reports as installed.

        Args:
            catalog: Targets and the hive they are resolved against
            probe: Presence probe; its ``kind`` selects runtime or IDE targets
                and ``desktop_only`` drops device platforms
            callback: Operation to run per installed target
            context: Shared context passed to the probe and the callback
            version: Single version replacing the catalog's version lists

        Returns:
            MatrixResult with the merged counters, whether any target changed,
            and on failure the first error message
        """
        kind = getattr(probe, "kind", TargetKind.RUNTIME)
        error = self.validate(catalog, kind, context)
        if error is not None:
            return MatrixResult.failed(error)

        try:
            if kind is TargetKind.IDE:
                targets = catalog.with_ide_override(version).ide_targets()
            else:
                targets = catalog.with_runtime_override(version).runtime_targets(
                    desktop_only=getattr(probe, "desktop_only", False)
                )
        except ValueError as e:
            return MatrixResult.failed(str(e))

        result = MatrixResult(success=True)
        for target in targets:
            logger.debug(f"target = {target}")
            try:
                presence = probe(target, catalog.root, context)
                if presence is None:
                    logger.debug(probe.missing_message(target))
                    continue

                result.invoked.append(str(target))
                outcome = callback(target, presence, context)
            except StoreError as e:
                result.success = False
                result.error = str(e)
                return result

            result.absorb(outcome)
            if not outcome.success:
                result.success = False
                result.error = outcome.error
                return result

            if context.verbose:
                logger.debug(f"{target}: side_effect = {outcome.side_effect}")

        return result

    @staticmethod
    def validate(
        catalog: TargetCatalog | None, kind: TargetKind, context: OperationContext
    ) -> str | None:
        """Return the first precondition violation, or None when the run may proceed.

        Raises:
            DisposedHandleError: If the catalog's root handle was already closed
        """
        if context is None or context.store is None:
            return "invalid registry"

        if catalog is None:
            return "invalid VS list" if kind is TargetKind.IDE else "invalid framework list"

        if catalog.root is None:
            return "invalid root key"
        if catalog.root.closed:
            raise DisposedHandleError("root key")
        if not context.store.is_supported_root(catalog.root):
            return "root key must be per-user or per-machine"

        if kind is TargetKind.IDE:
            if catalog.ide_versions is None:
                return "no VS versions found"
            return None

        if catalog.family_names is None:
            return "no framework names found"
        if catalog.versions is None:
            return "no framework versions found"
        if catalog.platform_names is None:
            return "no platform names found"
        if len(catalog.family_names) != len(catalog.platform_names):
            return (
                f"framework name count {len(catalog.family_names)} does not match "
                f"platform name count {len(catalog.platform_names)}"
            )
        return None

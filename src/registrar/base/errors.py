"""Exception hierarchy for registrar.

Expected conditions, such as a target that is not installed or a key that
is already gone, travel through result objects (see
:mod:`registrar.base.results`). The exceptions defined here are reserved
for contract violations and for native store failures, which stop the run
and are turned into a user-visible message by the command line entry point.

.. seealso::
   :class:`registrar.store.handle.StoreHandle` : Raises the store errors
   :func:`registrar.cli.main.main` : Converts exceptions into exit codes
"""


class RegistrarError(Exception):
    """Base exception for all registrar-specific errors.

    All custom exceptions raised by registrar inherit from this class so that
    callers can catch every expected failure mode with a single clause.
    """

    pass


class ConfigurationError(RegistrarError):
    """Raised when the run configuration is invalid or cannot be finalized.

    Covers unreadable configuration files, unknown option values, a core
    assembly whose runtime version is unsupported, and a run that was not
    confirmed by the user.
    """

    pass


class StoreError(RegistrarError):
    """Raised when the configuration store fails for a reason other than absence.

    The matrix engine reports these as a failed surface with the exception
    text as the error message.
    """

    pass


class ContractViolationError(RegistrarError):
    """Raised when store policy or handle lifetime rules are broken by the caller.

    These always propagate; nothing in registrar catches them.
    """

    pass


class DisposedHandleError(ContractViolationError):
    """Raised when a store or handle is used after it was closed."""

    def __init__(self, name: str):
        super().__init__(f"{name} has been closed")
        self.name = name


class ReadOnlyViolationError(ContractViolationError):
    """Raised when a write is attempted through a read-only store.

    A write through a read-only store is a programming error, never an
    expected condition, so it is not reported through a result object.
    """

    def __init__(self, operation: str, name: str):
        super().__init__(f"cannot {operation} on read-only key: {name}")
        self.operation = operation
        self.name = name


class RestrictedAccessError(ContractViolationError):
    """Raised when the native handle escape hatch is used on a restricted store."""

    pass


class MissingNodeError(StoreError):
    """Raised when a key or value to delete is missing and throw_on_missing is set."""

    def __init__(self, name: str, kind: str = "key"):
        super().__init__(f"{kind} not found: {name}")
        self.name = name
        self.kind = kind


class ImageFormatError(RegistrarError):
    """Raised when an assembly file is not a readable managed image."""

    pass

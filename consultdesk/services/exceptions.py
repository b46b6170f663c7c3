"""Errors raised by the booking core.

All of these except DependencyFailureError are returned to the caller as
the outcome of the operation. Retrying without new input (another slot or
provider) cannot succeed, so nothing here is retried internally.
"""


class ConsultDeskError(Exception):
    """Base class for booking core errors."""

    pass


class NotFoundError(ConsultDeskError):
    """Raised when a provider, patient or consultation does not exist."""

    pass


class NoProvidersError(NotFoundError):
    """Raised when no provider has the requested specialization."""

    def __init__(self, specialization: str):
        self.specialization = specialization
        super().__init__(f"No providers available for specialization '{specialization}'")


class AllBusyError(ConsultDeskError):
    """Raised when every eligible provider already holds the requested slot."""

    def __init__(self, specialization: str, day: object, time: str):
        self.specialization = specialization
        self.day = day
        self.time = time
        super().__init__(
            f"All {specialization} providers are busy on {day} at {time}. "
            "Please choose another time."
        )


class ConflictError(ConsultDeskError):
    """Raised when the target slot is already held by another active consultation.

    Also covers a lost race: the slot looked free but a concurrent booking
    committed first and the unique slot index rejected this one.
    """

    pass


class InvalidTransitionError(ConsultDeskError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move consultation from {current} to {target}")


class AlreadyMissedError(InvalidTransitionError):
    """Raised when marking an already missed consultation as missed."""

    def __init__(self) -> None:
        super().__init__(
            "missed",
            "missed",
            "Consultation is already marked as missed",
        )


class DependencyFailureError(ConsultDeskError):
    """Raised by collaborators when a notification or email could not be emitted.

    Callers log this per item; it never undoes a committed transition.
    """

    pass

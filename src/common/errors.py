# ABOUTME: Declares the named failure kinds raised by the scoring and planning engines.
# ABOUTME: Callers translate these into user-facing messages and HTTP status codes.


class RiskEngineError(Exception):
    """Base class for every failure raised by this package."""


class InvalidInput(RiskEngineError, ValueError):
    """Malformed thresholds, settings, vocabulary values, or arguments."""


class NoUpcomingExams(RiskEngineError):
    """A study plan was requested for a student with no pending exams."""


class MissingRiskProfile(RiskEngineError):
    """A plan operation needs a risk profile that has not been calculated yet."""


class InvalidStatusTransition(InvalidInput):
    """A study plan status change outside the allowed lifecycle."""


class NotFound(RiskEngineError, LookupError):
    pass


class StudentNotFound(NotFound):
    pass


class StudyPlanNotFound(NotFound):
    pass


class StudyPlanWeekNotFound(NotFound):
    pass


class RiskOverrideNotFound(NotFound):
    pass


class PermissionDenied(RiskEngineError):
    """The principal is not allowed to perform the action on the resource."""


class FeatureDisabled(RiskEngineError):
    """The institution has switched off the requested capability."""

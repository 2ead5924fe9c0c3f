"""
Error taxonomy for the build-repair pipeline

Only RunInProgressError and InvalidTransitionError ever reach callers of the
pipeline. Extraction failures and cancellation end the run as Failed; the
oracle, mutation and build errors are caught inside their components and
surface as typed results instead.
"""


class PipelineError(Exception):
    """Base class for pipeline failures"""
    pass


class ExtractionError(PipelineError):
    """Scaffold archive is missing or cannot be unpacked (fatal)"""
    pass


class OracleCommunicationError(PipelineError):
    """The oracle could not be reached, timed out, or returned nothing"""
    pass


class OracleParseError(PipelineError):
    """The oracle answered but the answer is not a usable action batch"""
    pass


class MutationError(PipelineError):
    """A single file action could not be applied"""
    pass


class BuildError(PipelineError):
    """The build runner was asked to build something that does not exist"""
    pass


class RunInProgressError(PipelineError):
    """Another run currently owns the same project name"""
    pass


class InvalidTransitionError(PipelineError):
    """A ProjectState transition that the state machine does not allow"""
    pass


class RunCancelledError(PipelineError):
    """The run's cancellation token was set between two steps"""
    pass


class VerificationWarning(UserWarning):
    """Artifact is missing a host-required entry (never fatal)"""
    pass


__all__ = [
    "PipelineError",
    "ExtractionError",
    "OracleCommunicationError",
    "OracleParseError",
    "MutationError",
    "BuildError",
    "RunInProgressError",
    "InvalidTransitionError",
    "RunCancelledError",
    "VerificationWarning",
]

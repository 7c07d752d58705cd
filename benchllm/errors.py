"""
Error taxonomy for benchmark runs.

Every candidate-local error is caught by the runner and recorded on the
candidate's RunResult. Only RunCancelled propagates out of a run.
"""


class BenchmarkError(Exception):
    """Base class for errors raised by the harness itself."""


class ConfigError(BenchmarkError):
    """Invalid settings or a filter that matches nothing."""


class ConstructionError(BenchmarkError):
    """The candidate's owning class could not be instantiated."""


class SignatureError(BenchmarkError):
    """The candidate callable has an unsupported shape or return type."""


class EmptyContentError(BenchmarkError):
    """The candidate returned None, an empty string, or blank content."""


class CandidateInvocationError(BenchmarkError):
    """
    Wrapper raised around a failure deep inside a candidate.

    The runner unwraps it to the original exception (``__cause__``) before
    recording the result.
    """
    wrapped = True


class RunCancelled(Exception):
    """
    Raised when the caller's cancellation signal is set.

    Carries the results collected before cancellation so the caller can
    still persist them.
    """

    def __init__(self, results=None, message="Benchmark run cancelled"):
        super().__init__(message)
        self.results = list(results or [])

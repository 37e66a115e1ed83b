"""
Domain Errors

Exceptions that describe evaluation-level outcomes. Task-level failures are
recorded as task state and never surface as these exceptions.
"""


class WebEvalError(Exception):
    """Base class for all errors raised by webeval-core"""
    pass


class EvaluationError(WebEvalError):
    """Evaluation-level failure (missing tasks, unusable configuration, ...)"""
    pass


class EvaluationFencedError(WebEvalError):
    """
    Raised when a run no longer owns its evaluation

    Happens when the evaluation was finalized by someone else (e.g. the timeout
    sweep) or picked up by another run with a newer run token.
    """

    def __init__(self, evaluation_id: str, reason: str):
        super().__init__(f"Evaluation {evaluation_id} fenced: {reason}")
        self.evaluation_id = evaluation_id
        self.reason = reason


class UnknownBenchmarkError(WebEvalError, KeyError):
    """The requested benchmark is not present in the catalog"""

    def __init__(self, benchmark_name: str):
        super().__init__(benchmark_name)
        self.benchmark_name = benchmark_name

    def __str__(self) -> str:
        return f"Unknown benchmark: {self.benchmark_name}"

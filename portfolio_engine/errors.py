"""Typed exceptions raised by the portfolio engine.

Only conditions the caller must react to are exceptions. Zero denominators
in percentage or weight math are expected steady states (no active domains,
an empty selection) and resolve to a fallback value through
:func:`portfolio_engine._common.safe_divide` instead of raising.
"""


class PortfolioEngineError(Exception):
    """Base class for engine errors.

    Parameters
    ----------
    message : str
        Human-readable description.

    Attributes
    ----------
    code : str
        Machine-readable error code, stable across releases.
    """

    code: str = "PORTFOLIO_ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoConvergence(PortfolioEngineError):
    """IRR root-finding failed; the IRR of the series is undefined.

    Parameters
    ----------
    reason : str
        Why no root was found (``"no_sign_change"``, ``"no_bracket"`` or
        ``"iteration_limit"``).
    iterations : int
        Iterations spent before giving up.
    """

    code = "IRR_NO_CONVERGENCE"

    def __init__(self, reason: str, iterations: int = 0) -> None:
        super().__init__(f"IRR did not converge ({reason}) after {iterations} iterations")
        self.reason = reason
        self.iterations = iterations


class UnknownPattern(PortfolioEngineError, ValueError):
    """Requested allocation pattern is not registered.

    Parameters
    ----------
    name : str
        The requested pattern name.
    known : list[str]
        Registered pattern names.
    """

    code = "UNKNOWN_PATTERN"

    def __init__(self, name: str, known: list[str]) -> None:
        super().__init__(f"Unknown allocation pattern {name!r}; expected one of {', '.join(known)}")
        self.name = name
        self.known = list(known)

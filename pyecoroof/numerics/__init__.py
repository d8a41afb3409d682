from .double_buffer import DoubleBufferedValue
from .newton import RootResult, SolverHistory, solve_newton_bisect

__all__ = ["DoubleBufferedValue", "RootResult", "SolverHistory", "solve_newton_bisect"]

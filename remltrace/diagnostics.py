"""
Heuristic checks on the path taken by a REML optimizer.

A correctly behaving REML iteration increases the log-likelihood at every
step. Three independent scans are provided:

- detect_nonmonotonic: any decrease between consecutive log-likelihoods
- detect_oscillation: sign changes in consecutive parameter updates
- detect_stagnation: a run of very small log-likelihood improvements

These flag an unstable path. They do not by themselves show that the
likelihood has more than one maximum; that needs fits from several
starting values or a look at the reconstructed surface.
"""

from __future__ import annotations
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .control import TraceControl
from .utils import consecutive_differences


def detect_nonmonotonic(loglik, tol: float = 0.0) -> List[int]:
    """
    Positions where the log-likelihood decreases.

    Parameters
    ----------
    loglik : array-like
        Log-likelihood per iteration
    tol : float, default=0.0
        Drops of at most tol are ignored

    Returns
    -------
    list of int
        Index i of every value with loglik[i] - loglik[i-1] < -tol

    Examples
    --------
    >>> detect_nonmonotonic([-1250.5, -1245.2, -1240.1])
    []
    >>> detect_nonmonotonic([-1250.5, -1245.2, -1246.0, -1240.1])
    [2]
    """
    deltas = consecutive_differences(loglik)
    return [int(i) + 1 for i in np.flatnonzero(deltas < -tol)]


def count_sign_changes(values) -> int:
    """Number of sign changes between consecutive non-zero deltas."""
    deltas = consecutive_differences(values)
    signs = np.sign(deltas[np.isfinite(deltas)])
    signs = signs[signs != 0]
    if signs.size < 2:
        return 0
    return int(np.sum(signs[1:] != signs[:-1]))


def detect_oscillation(values: Union[pd.DataFrame, Dict[str, np.ndarray]],
                       min_sign_changes: int = 1) -> Dict[str, int]:
    """
    Count direction reversals in each parameter's path.

    Parameters
    ----------
    values : pd.DataFrame or dict
        One column (or entry) per parameter, rows in iteration order
    min_sign_changes : int, default=1
        Only parameters with at least this many reversals are returned

    Returns
    -------
    dict
        {parameter: number of sign changes} for flagged parameters
    """
    if isinstance(values, pd.DataFrame):
        items = [(col, values[col].values) for col in values.columns]
    else:
        items = list(values.items())

    flagged = {}
    for name, series in items:
        n_changes = count_sign_changes(series)
        if n_changes >= min_sign_changes:
            flagged[name] = n_changes
    return flagged


def detect_stagnation(loglik, tol: float = 1e-3, min_run: int = 3) -> Dict[str, Union[int, bool]]:
    """
    Find the longest run of very small log-likelihood improvements.

    Parameters
    ----------
    loglik : array-like
        Log-likelihood per iteration
    tol : float, default=1e-3
        Improvements in [0, tol) count as small
    min_run : int, default=3
        Run length at which the path is flagged

    Returns
    -------
    dict
        'run' (longest run length), 'start' (index of the first delta in the
        run, or None), 'at_end' (run reaches the last iteration) and
        'flagged' (run >= min_run)
    """
    deltas = consecutive_differences(loglik)
    small = (deltas >= 0) & (deltas < tol)

    best_run, best_start = 0, None
    run, start = 0, 0
    for i, is_small in enumerate(small):
        if is_small:
            if run == 0:
                start = i
            run += 1
            if run > best_run:
                best_run, best_start = run, start
        else:
            run = 0

    at_end = best_run > 0 and best_start + best_run == len(deltas)
    return {
        'run': int(best_run),
        'start': best_start,
        'at_end': bool(at_end),
        'flagged': bool(best_run >= min_run and min_run > 0),
    }


@dataclass
class PathDiagnostics:
    """
    Result of the path heuristics for one convergence log.

    Attributes
    ----------
    n_iter : int
        Number of iterations scanned
    nonmonotonic : bool
        Whether the log-likelihood decreased at any step
    decrease_at : list[int]
        Iteration numbers at which a decrease was observed
    max_decrease : float
        Largest single drop in log-likelihood (0 if none)
    oscillating : dict[str, int]
        Parameters whose updates changed direction, with the count
    stagnation_run : int
        Longest run of improvements below the stagnation tolerance
    stagnation_at_end : bool
        Whether that run reaches the final iteration
    stagnant : bool
        Whether the run is long enough to be flagged
    total_gain : float
        Final minus initial log-likelihood
    messages : list[str]
        Readable description of each flag
    """
    n_iter: int
    nonmonotonic: bool
    decrease_at: List[int]
    max_decrease: float
    oscillating: Dict[str, int]
    stagnation_run: int
    stagnation_at_end: bool
    stagnant: bool
    total_gain: float
    messages: List[str] = field(default_factory=list)

    @property
    def any_oscillation(self) -> bool:
        return len(self.oscillating) > 0

    @property
    def unstable(self) -> bool:
        return self.nonmonotonic or self.any_oscillation

    def to_dict(self) -> Dict:
        return {
            'n_iter': self.n_iter,
            'nonmonotonic': self.nonmonotonic,
            'decrease_at': list(self.decrease_at),
            'max_decrease': self.max_decrease,
            'oscillating': dict(self.oscillating),
            'any_oscillation': self.any_oscillation,
            'stagnation_run': self.stagnation_run,
            'stagnation_at_end': self.stagnation_at_end,
            'stagnant': self.stagnant,
            'total_gain': self.total_gain,
            'unstable': self.unstable,
        }

    def to_frame(self) -> pd.DataFrame:
        """Two-column check/result table, suitable for export."""
        osc = ', '.join(f"{k} ({v})" for k, v in self.oscillating.items())
        rows = [
            ('Iterations', str(self.n_iter)),
            ('Log-likelihood gain', f"{self.total_gain:.4f}"),
            ('Non-monotonic log-likelihood', 'yes' if self.nonmonotonic else 'no'),
            ('Decreases at iteration', ', '.join(str(i) for i in self.decrease_at) or '-'),
            ('Largest decrease', f"{self.max_decrease:.4f}"),
            ('Oscillating parameters', osc or '-'),
            ('Longest small-improvement run', str(self.stagnation_run)),
            ('Run reaches final iteration', 'yes' if self.stagnation_at_end else 'no'),
            ('Stagnation flagged', 'yes' if self.stagnant else 'no'),
        ]
        return pd.DataFrame(rows, columns=['Check', 'Result'])


def diagnose_path(trace, control: Optional[TraceControl] = None) -> PathDiagnostics:
    """
    Run all path heuristics on a convergence log.

    Parameters
    ----------
    trace : ConvergenceTrace or pd.DataFrame
        Loaded trace, or a raw log table whose columns can be resolved
    control : TraceControl, optional
        Thresholds; defaults to the trace's own control or TraceControl()

    Returns
    -------
    PathDiagnostics
    """
    if isinstance(trace, pd.DataFrame):
        from .core import ConvergenceTrace
        trace = ConvergenceTrace(trace, control=control)
    control = control or trace.control

    loglik = trace.loglik
    iterations = trace.iterations
    deltas = consecutive_differences(loglik)

    decrease_idx = detect_nonmonotonic(loglik, tol=control.decrease_tol)
    decrease_at = [int(iterations[i]) for i in decrease_idx]
    max_decrease = float(-deltas.min()) if decrease_idx else 0.0

    oscillating = detect_oscillation(trace.parameters, control.min_sign_changes)
    stagnation = detect_stagnation(loglik, tol=control.stagnation_tol,
                                   min_run=control.stagnation_run)
    total_gain = float(loglik[-1] - loglik[0]) if len(loglik) > 0 else 0.0

    messages = []
    if decrease_at:
        messages.append(f"Log-likelihood decreased at iteration(s) {decrease_at} "
                        f"(largest drop {max_decrease:.4g}); the optimizer path is unstable")
    for name, n_changes in oscillating.items():
        messages.append(f"'{name}' changed direction {n_changes} time(s)")
    if stagnation['flagged']:
        where = 'at convergence' if stagnation['at_end'] else 'before convergence'
        messages.append(f"{stagnation['run']} consecutive improvements below "
                        f"{control.stagnation_tol:g} {where}")
    if not messages:
        messages.append("No irregularities detected in the optimizer path")

    if control.monitoring:
        for msg in messages:
            print(f"[diagnose] {msg}")

    return PathDiagnostics(
        n_iter=len(loglik),
        nonmonotonic=len(decrease_at) > 0,
        decrease_at=decrease_at,
        max_decrease=max_decrease,
        oscillating=oscillating,
        stagnation_run=stagnation['run'],
        stagnation_at_end=stagnation['at_end'],
        stagnant=stagnation['flagged'],
        total_gain=total_gain,
        messages=messages,
    )

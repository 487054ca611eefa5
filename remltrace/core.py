"""
Core convergence-trace object for REML optimizer logs.
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional, Union, List, Dict, Any

from .control import TraceControl
from .utils import read_convergence_log, resolve_columns, validate_log_structure
from .diagnostics import diagnose_path, PathDiagnostics
from .surface import likelihood_surface, LikelihoodSurface
from .tables import summary_statistics, DEFAULT_STATS
from . import plotting
from . import export


class ConvergenceTrace:
    """
    Iteration history of a REML optimizer.

    Holds the per-iteration variance components, residual variance and
    log-likelihood of one fit, and gives access to the path heuristics,
    the reconstructed likelihood surface, summary tables, plots and
    document export.

    Parameters
    ----------
    data : pd.DataFrame
        Log table, one row per iteration
    iteration : str, optional
        Name of the iteration column (detected if omitted)
    loglik : str, optional
        Name of the log-likelihood column (detected if omitted)
    residual : str, optional
        Name of the residual variance column (detected if omitted)
    components : list of str, optional
        Variance component columns (default: every other numeric column)
    control : TraceControl, optional
        Thresholds for the diagnostics and the surface grid

    Attributes
    ----------
    data : pd.DataFrame
        Cleaned log sorted by iteration
    iteration_col, loglik_col, residual_col : str
        Resolved column names (residual_col may be None)
    component_cols : list of str
        Variance component columns
    n_iter : int
        Number of iterations in the log
    """

    def __init__(
        self,
        data: pd.DataFrame,
        iteration: Optional[str] = None,
        loglik: Optional[str] = None,
        residual: Optional[str] = None,
        components: Optional[List[str]] = None,
        control: Optional[TraceControl] = None
    ):
        if not isinstance(data, pd.DataFrame):
            raise ValueError("data must be a pandas DataFrame")
        self.control = control or TraceControl()

        columns = resolve_columns(data, iteration=iteration, loglik=loglik,
                                  residual=residual, components=components)
        self.data = validate_log_structure(data, columns)

        self.iteration_col = columns['iteration']
        self.loglik_col = columns['loglik']
        self.residual_col = columns['residual']
        self.component_cols = list(columns['components'])
        self.n_iter = len(self.data)

        if self.control.monitoring:
            print(f"Loaded convergence log: {self.n_iter} iterations, "
                  f"components {self.component_cols}, "
                  f"residual '{self.residual_col}', log-likelihood '{self.loglik_col}'")

    @classmethod
    def from_file(cls, path: Union[str, Path], sep: Optional[str] = None,
                  read_kwargs: Optional[Dict[str, Any]] = None,
                  **kwargs) -> 'ConvergenceTrace':
        """
        Load a trace from a delimited text file.

        Parameters
        ----------
        path : str or Path
            Log file
        sep : str, optional
            Delimiter; sniffed when omitted
        read_kwargs : dict, optional
            Extra arguments for pandas.read_csv
        **kwargs
            Column names and control, as for the constructor

        Examples
        --------
        >>> trace = ConvergenceTrace.from_file('reml_log.csv')
        >>> trace.diagnose().unstable
        False
        """
        data = read_convergence_log(path, sep=sep, **(read_kwargs or {}))
        return cls(data, **kwargs)

    def __repr__(self):
        return (f"ConvergenceTrace(n_iter={self.n_iter}, components={self.component_cols}, "
                f"loglik='{self.loglik_col}')")

    @property
    def iterations(self) -> np.ndarray:
        return self.data[self.iteration_col].values

    @property
    def loglik(self) -> np.ndarray:
        return self.data[self.loglik_col].values.astype(float)

    @property
    def residual(self) -> Optional[np.ndarray]:
        if self.residual_col is None:
            return None
        return self.data[self.residual_col].values.astype(float)

    @property
    def components(self) -> pd.DataFrame:
        return self.data[self.component_cols]

    @property
    def parameters(self) -> pd.DataFrame:
        """Variance components followed by the residual, if present."""
        cols = list(self.component_cols)
        if self.residual_col is not None:
            cols.append(self.residual_col)
        return self.data[cols]

    @property
    def loglik_change(self) -> np.ndarray:
        return np.diff(self.loglik)

    @property
    def final(self) -> Dict[str, float]:
        return self.data.iloc[-1].to_dict()

    @property
    def best(self) -> Dict[str, float]:
        """Row with the highest log-likelihood (first one on ties)."""
        return self.data.iloc[int(np.argmax(self.loglik))].to_dict()

    def diagnose(self, control: Optional[TraceControl] = None) -> PathDiagnostics:
        """Run the path heuristics; see diagnostics.diagnose_path."""
        return diagnose_path(self, control=control)

    def surface(self, x: Optional[str] = None, y: Optional[str] = None,
                control: Optional[TraceControl] = None, padding: float = 0.0) -> LikelihoodSurface:
        """Interpolated likelihood surface over two parameters."""
        return likelihood_surface(self, x=x, y=y, control=control, padding=padding)

    def summary_table(self, stats=None, by: Optional[str] = None) -> pd.DataFrame:
        """Summary statistics of the parameters and log-likelihood."""
        columns = list(self.parameters.columns) + [self.loglik_col]
        return summary_statistics(self.data, columns=columns, by=by,
                                  stats=stats or DEFAULT_STATS)

    def plot(self, which: str = 'all', **kwargs):
        return plotting.plot_trace(self, which=which, **kwargs)

    def to_docx(self, path: Union[str, Path], **kwargs) -> Path:
        """Write summary and diagnostics tables to a .docx report."""
        return export.export_diagnostics_report(self, path, **kwargs)

    def summary(self):
        """Print a short report of the trace and its diagnostics."""
        diagnostics = self.diagnose()

        print("REML Convergence Trace Summary")
        print("=" * 50)
        print(f"Iterations: {self.n_iter} "
              f"({self.iterations[0]} to {self.iterations[-1]})")
        print(f"Log-likelihood: {self.loglik[0]:.4f} -> {self.loglik[-1]:.4f} "
              f"(gain {diagnostics.total_gain:.4f})")

        print("\nFinal Estimates:")
        final = self.final
        for col in self.parameters.columns:
            print(f"  {col}: {final[col]:.6f}")

        print("\nPath Checks:")
        for msg in diagnostics.messages:
            print(f"  - {msg}")

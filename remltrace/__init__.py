"""
remltrace: diagnostics for REML optimizer convergence logs

Reads iteration logs of a REML fit, flags unstable optimizer paths,
reconstructs the log-likelihood surface over two variance components
for visual inspection of single versus multiple maxima, and exports
summary tables to Word documents.
"""

from .core import ConvergenceTrace
from .control import TraceControl
from .diagnostics import (diagnose_path, detect_nonmonotonic, detect_oscillation,
                          detect_stagnation, PathDiagnostics)
from .surface import interpolate_surface, likelihood_surface, LikelihoodSurface, QuadraticFit
from .plotting import (plot_trace, plot_surface_2d, plot_surface_3d, plot_loglik_path,
                       plot_parameter_paths, save_figure)
from .tables import summary_statistics, trace_summary_table, format_table
from .export import TableFormat, add_table, export_table, export_tables, export_diagnostics_report
from .utils import read_convergence_log

__version__ = "0.1.0"
__author__ = "remltrace developers"

__all__ = [
    "ConvergenceTrace",
    "TraceControl",
    "diagnose_path",
    "detect_nonmonotonic",
    "detect_oscillation",
    "detect_stagnation",
    "PathDiagnostics",
    "interpolate_surface",
    "likelihood_surface",
    "LikelihoodSurface",
    "QuadraticFit",
    "plot_trace",
    "plot_surface_2d",
    "plot_surface_3d",
    "plot_loglik_path",
    "plot_parameter_paths",
    "save_figure",
    "summary_statistics",
    "trace_summary_table",
    "format_table",
    "TableFormat",
    "add_table",
    "export_table",
    "export_tables",
    "export_diagnostics_report",
    "read_convergence_log",
]

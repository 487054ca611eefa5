"""
Utility functions for reading and validating REML convergence logs.
"""

import re
import warnings
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional, List, Dict, Any, Union


ITERATION_ALIASES = ('iteration', 'iter', 'it', 'round', 'cycle', 'step')
LOGLIK_ALIASES = ('loglik', 'logl', 'loglikelihood', 'll', 'reml',
                  'remllogl', 'remllik', 'logreml')
RESIDUAL_ALIASES = ('residual', 'resid', 'res', 'error', 'sigma2e',
                    'sigmae', 'vare', 've')


def _normalize_name(name: Any) -> str:
    """Lower-case a column name and strip separators."""
    return re.sub(r'[\s_\-\.]', '', str(name)).lower()


def _find_alias(columns: List[str], aliases: tuple) -> Optional[str]:
    """Return the first column whose normalised name is in aliases."""
    normalized = {_normalize_name(col): col for col in reversed(columns)}
    for alias in aliases:
        if alias in normalized:
            return normalized[alias]
    return None


def _sniff_separator(path: Path, comment: Optional[str] = '#',
                     encoding: Optional[str] = None) -> Optional[str]:
    """
    Whitespace pattern for blank-separated logs, None to let pandas sniff.

    The sniffer settles on a single space for column-aligned logs and then
    reads every extra blank as an empty column.
    """
    with open(path, encoding=encoding) as f:
        for line in f:
            if comment:
                line = line.split(comment, 1)[0]
            if not line.strip():
                continue
            if any(delim in line for delim in (',', ';', '\t')):
                return None
            return r'\s+'
    return None


def read_convergence_log(path: Union[str, Path], sep: Optional[str] = None,
                         **kwargs) -> pd.DataFrame:
    """
    Read a delimited convergence log into a DataFrame.

    Parameters
    ----------
    path : str or Path
        Path to the log file
    sep : str, optional
        Column delimiter. If None the delimiter is sniffed from the file;
        'whitespace' splits on runs of blanks.
    **kwargs
        Passed on to pandas.read_csv

    Returns
    -------
    pd.DataFrame
        Raw log table

    Examples
    --------
    >>> log = read_convergence_log('asreml_iterations.txt')
    >>> print(log.head())
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Convergence log not found: {path}")

    kwargs.setdefault('comment', '#')
    if sep is None:
        sep = _sniff_separator(path, kwargs['comment'], kwargs.get('encoding'))
    if sep is None:
        kwargs.setdefault('engine', 'python')
    elif sep == 'whitespace':
        sep = r'\s+'

    data = pd.read_csv(path, sep=sep, **kwargs)
    data.columns = [str(col).strip() for col in data.columns]
    return data


def resolve_columns(data: pd.DataFrame, iteration: Optional[str] = None,
                    loglik: Optional[str] = None, residual: Optional[str] = None,
                    components: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Work out which columns hold each role of a convergence log.

    Explicit names take precedence; otherwise columns are matched against
    common aliases, ignoring case and separators. Every remaining numeric
    column is treated as a variance component.

    Returns
    -------
    dict
        Keys 'iteration', 'loglik', 'residual' (str or None) and
        'components' (list of str)
    """
    columns = list(data.columns)
    requested = [col for col in (iteration, loglik, residual) if col is not None]
    requested.extend(components or [])
    missing_cols = [col for col in requested if col not in columns]
    if missing_cols:
        raise ValueError(f"Missing columns in data: {missing_cols}")

    if iteration is None:
        iteration = _find_alias(columns, ITERATION_ALIASES)
    if loglik is None:
        loglik = _find_alias(columns, LOGLIK_ALIASES)
    if loglik is None:
        raise ValueError(f"Missing log-likelihood column; looked for one of "
                         f"{list(LOGLIK_ALIASES)} in {columns}")
    if residual is None:
        residual = _find_alias(columns, RESIDUAL_ALIASES)

    if components is None:
        taken = {iteration, loglik, residual}
        # unnamed or empty columns are delimiter artefacts, not components
        components = [col for col in columns
                      if col not in taken and pd.api.types.is_numeric_dtype(data[col])
                      and not str(col).startswith('Unnamed:')
                      and data[col].notnull().any()]
    else:
        components = list(components)

    if len(components) == 0:
        raise ValueError("No variance component columns found in data")

    return {
        'iteration': iteration,
        'loglik': loglik,
        'residual': residual,
        'components': components,
    }


def validate_log_structure(data: pd.DataFrame, columns: Dict[str, Any]) -> pd.DataFrame:
    """
    Validate a convergence log and return a cleaned, iteration-ordered copy.

    Parameters
    ----------
    data : pd.DataFrame
        Raw log table
    columns : dict
        Column roles as returned by resolve_columns

    Returns
    -------
    pd.DataFrame
        Copy with missing log-likelihood rows dropped, sorted by iteration,
        duplicate iterations removed (last kept) and an iteration column
        added if the log had none
    """
    if not isinstance(data, pd.DataFrame):
        raise ValueError("data must be a pandas DataFrame")

    data = data.copy()
    numeric_cols = [columns['loglik']] + list(columns['components'])
    if columns['residual'] is not None:
        numeric_cols.append(columns['residual'])
    if columns['iteration'] is not None:
        numeric_cols.append(columns['iteration'])

    non_numeric = [col for col in numeric_cols
                   if not pd.api.types.is_numeric_dtype(data[col])]
    if non_numeric:
        raise ValueError(f"Columns must be numeric: {non_numeric}")

    n_missing = int(data[columns['loglik']].isnull().sum())
    if n_missing > 0:
        warnings.warn(f"Dropping {n_missing} rows with missing log-likelihood")
        data = data.loc[data[columns['loglik']].notnull()]

    if len(data) < 2:
        raise ValueError("Insufficient data: need at least 2 iterations")

    if columns['iteration'] is None:
        warnings.warn("No iteration column found; numbering rows 1..n")
        columns['iteration'] = 'iteration'
        data.insert(0, 'iteration', np.arange(1, len(data) + 1))

    iter_col = columns['iteration']
    duplicated = data[iter_col].duplicated(keep='last')
    if duplicated.any():
        warnings.warn(f"Duplicate iteration numbers {sorted(data.loc[duplicated, iter_col].unique().tolist())}; "
                      "keeping the last occurrence")
        data = data.loc[~duplicated]

    data = data.sort_values(iter_col, kind='mergesort').reset_index(drop=True)
    return data


def consecutive_differences(values: np.ndarray) -> np.ndarray:
    """First differences of a 1-D sequence (empty for length < 2)."""
    values = np.asarray(values, dtype=float)
    if values.size < 2:
        return np.array([], dtype=float)
    return np.diff(values)

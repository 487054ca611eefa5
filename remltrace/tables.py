"""
Summary statistic tables for convergence logs and other data frames.
"""

import numpy as np
import pandas as pd
from typing import Optional, List, Union, Dict, Sequence


DEFAULT_STATS = ('count', 'mean', 'sd', 'min', 'median', 'max')

AVAILABLE_STATS = ('count', 'mean', 'sd', 'se', 'min', 'q1', 'median',
                   'q3', 'max', 'cv')


def _describe(values: pd.Series, stats: Sequence[str]) -> Dict[str, float]:
    values = values.dropna().astype(float)
    n = len(values)
    sd = values.std(ddof=1) if n > 1 else np.nan
    mean = values.mean() if n > 0 else np.nan

    result = {}
    for stat in stats:
        if stat == 'count':
            result[stat] = n
        elif stat == 'mean':
            result[stat] = mean
        elif stat == 'sd':
            result[stat] = sd
        elif stat == 'se':
            result[stat] = sd / np.sqrt(n) if n > 1 else np.nan
        elif stat == 'min':
            result[stat] = values.min() if n > 0 else np.nan
        elif stat == 'q1':
            result[stat] = values.quantile(0.25) if n > 0 else np.nan
        elif stat == 'median':
            result[stat] = values.median() if n > 0 else np.nan
        elif stat == 'q3':
            result[stat] = values.quantile(0.75) if n > 0 else np.nan
        elif stat == 'max':
            result[stat] = values.max() if n > 0 else np.nan
        elif stat == 'cv':
            result[stat] = 100 * sd / mean if n > 1 and mean != 0 else np.nan
    return result


def summary_statistics(data: pd.DataFrame, columns: Optional[List[str]] = None,
                       by: Optional[str] = None,
                       stats: Sequence[str] = DEFAULT_STATS) -> pd.DataFrame:
    """
    Tabulate summary statistics, one row per variable.

    Parameters
    ----------
    data : pd.DataFrame
        Input data
    columns : list of str, optional
        Variables to summarise (default: all numeric columns except `by`)
    by : str, optional
        Grouping column; rows become a (group, variable) MultiIndex
    stats : sequence of str
        Any of 'count', 'mean', 'sd', 'se', 'min', 'q1', 'median', 'q3',
        'max', 'cv'. sd is the sample standard deviation, se = sd/sqrt(n)
        and cv is in percent.

    Returns
    -------
    pd.DataFrame
        Rows are variables, columns are statistics

    Examples
    --------
    >>> table = summary_statistics(trace.data, columns=['sigma2_g', 'loglik'])
    >>> table.loc['loglik', 'max']
    """
    if not isinstance(data, pd.DataFrame):
        raise ValueError("data must be a pandas DataFrame")

    stats = list(stats)
    unknown = [s for s in stats if s not in AVAILABLE_STATS]
    if unknown:
        raise ValueError(f"Unknown statistics: {unknown}; choose from {list(AVAILABLE_STATS)}")

    if by is not None and by not in data.columns:
        raise ValueError(f"Missing columns in data: {[by]}")

    if columns is None:
        columns = [col for col in data.columns
                   if col != by and pd.api.types.is_numeric_dtype(data[col])]
    missing_cols = [col for col in columns if col not in data.columns]
    if missing_cols:
        raise ValueError(f"Missing columns in data: {missing_cols}")
    non_numeric = [col for col in columns if not pd.api.types.is_numeric_dtype(data[col])]
    if non_numeric:
        raise ValueError(f"Columns must be numeric: {non_numeric}")

    if by is None:
        rows = {col: _describe(data[col], stats) for col in columns}
        table = pd.DataFrame.from_dict(rows, orient='index', columns=stats)
        table.index.name = 'variable'
    else:
        records = []
        for group, sub in data.groupby(by, sort=True):
            for col in columns:
                records.append({by: group, 'variable': col, **_describe(sub[col], stats)})
        table = pd.DataFrame.from_records(records, columns=[by, 'variable'] + stats)
        table = table.set_index([by, 'variable'])

    if 'count' in stats:
        table['count'] = table['count'].astype(int)
    return table


def trace_summary_table(trace) -> pd.DataFrame:
    """
    Start-to-finish summary of every parameter in a convergence trace.

    Returns
    -------
    pd.DataFrame
        One row per parameter (and the log-likelihood) with start, final,
        change, min, max and the value at the best log-likelihood
    """
    data = trace.data
    best_idx = int(np.argmax(trace.loglik))
    columns = list(trace.parameters.columns) + [trace.loglik_col]

    rows = {}
    for col in columns:
        values = data[col].astype(float)
        rows[col] = {
            'start': values.iloc[0],
            'final': values.iloc[-1],
            'change': values.iloc[-1] - values.iloc[0],
            'min': values.min(),
            'max': values.max(),
            'at_best': values.iloc[best_idx],
        }
    table = pd.DataFrame.from_dict(rows, orient='index')
    table.index.name = 'parameter'
    return table


def format_table(table: pd.DataFrame, decimals: Union[int, Dict[str, int]] = 3,
                 thousands: bool = False, na_rep: str = '') -> pd.DataFrame:
    """
    Render a table's values as strings for publication.

    Parameters
    ----------
    table : pd.DataFrame
        Table to format
    decimals : int or dict, default=3
        Decimal places, for all columns or per column (missing columns use 3)
    thousands : bool, default=False
        Whether to group thousands with commas
    na_rep : str, default=''
        Text for missing values

    Returns
    -------
    pd.DataFrame
        Same shape and labels, string values
    """
    sep = ',' if thousands else ''
    formatted = pd.DataFrame(index=table.index, columns=table.columns, dtype=object)

    for col in table.columns:
        places = decimals.get(col, 3) if isinstance(decimals, dict) else decimals
        series = table[col]
        is_int = pd.api.types.is_integer_dtype(series) or pd.api.types.is_bool_dtype(series)
        is_num = pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series)

        values = []
        for value in series:
            if value is None or (isinstance(value, float) and np.isnan(value)):
                values.append(na_rep)
            elif is_int and is_num:
                values.append(f"{int(value):{sep}d}")
            elif is_num:
                values.append(f"{float(value):{sep}.{places}f}")
            else:
                values.append(str(value))
        formatted[col] = values

    return formatted

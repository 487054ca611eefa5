"""
Test cases for ConvergenceTrace loading and column handling.
"""

import pytest
import numpy as np
import pandas as pd

import sys
import os
# Add parent directory to path to find remltrace package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from remltrace.core import ConvergenceTrace
from remltrace.control import TraceControl
from remltrace.utils import read_convergence_log, resolve_columns
from remltrace.datasets import create_toy_log, generate_convergence_log


class TestConvergenceTrace:
    """Test cases for ConvergenceTrace class."""
    
    def setup_method(self):
        """Set up test data."""
        self.data = create_toy_log()
        
    def test_basic_initialization(self):
        """Columns are resolved from their names."""
        trace = ConvergenceTrace(self.data)
        
        assert trace.iteration_col == 'iteration'
        assert trace.loglik_col == 'loglik'
        assert trace.residual_col == 'residual'
        assert trace.component_cols == ['sigma2_g', 'sigma2_b']
        assert trace.n_iter == 5
        assert list(trace.parameters.columns) == ['sigma2_g', 'sigma2_b', 'residual']
        
    def test_accessors(self):
        trace = ConvergenceTrace(self.data)
        
        np.testing.assert_array_equal(trace.iterations, [1, 2, 3, 4, 5])
        np.testing.assert_allclose(trace.loglik, self.data['loglik'].values)
        np.testing.assert_allclose(trace.residual, self.data['residual'].values)
        np.testing.assert_allclose(trace.loglik_change, np.diff(self.data['loglik'].values))
        assert trace.final['sigma2_g'] == 16.9
        assert trace.best['iteration'] == 5
        
    def test_best_differs_from_final(self):
        data = self.data.copy()
        data.loc[4, 'loglik'] = -1241.0
        trace = ConvergenceTrace(data)
        
        assert trace.best['iteration'] == 4
        assert trace.final['iteration'] == 5
        
    def test_alias_columns(self):
        """Common column spellings from REML software are recognised."""
        data = pd.DataFrame({
            'Iter': [1, 2, 3],
            'Vg': [1.0, 2.0, 2.5],
            'Ve': [4.0, 3.0, 2.8],
            'LogL': [-20.0, -18.0, -17.5],
        })
        trace = ConvergenceTrace(data)
        
        assert trace.iteration_col == 'Iter'
        assert trace.residual_col == 'Ve'
        assert trace.loglik_col == 'LogL'
        assert trace.component_cols == ['Vg']
        
    def test_alias_with_separators(self):
        data = pd.DataFrame({
            'Log-Likelihood': [-20.0, -18.0, -17.5],
            'sigma2.e': [4.0, 3.0, 2.8],
            'block': [1.0, 2.0, 2.5],
            'cycle': [1, 2, 3],
        })
        columns = resolve_columns(data)
        
        assert columns['loglik'] == 'Log-Likelihood'
        assert columns['residual'] == 'sigma2.e'
        assert columns['iteration'] == 'cycle'
        assert columns['components'] == ['block']
        
    def test_explicit_columns(self):
        data = self.data.rename(columns={'loglik': 'objective', 'residual': 'err_var'})
        trace = ConvergenceTrace(data, loglik='objective', residual='err_var',
                                 components=['sigma2_g'])
        
        assert trace.loglik_col == 'objective'
        assert trace.residual_col == 'err_var'
        assert trace.component_cols == ['sigma2_g']
        
    def test_input_validation(self):
        """Test input validation."""
        with pytest.raises(ValueError, match="data must be a pandas DataFrame"):
            ConvergenceTrace("not a dataframe")
            
        with pytest.raises(ValueError, match="Missing columns"):
            ConvergenceTrace(self.data, loglik='missing_col')
            
        with pytest.raises(ValueError, match="Missing log-likelihood column"):
            ConvergenceTrace(self.data.drop(columns='loglik'))
            
        with pytest.raises(ValueError, match="No variance component columns"):
            ConvergenceTrace(self.data[['iteration', 'residual', 'loglik']])
            
    def test_non_numeric_column(self):
        data = self.data.copy()
        data['sigma2_g'] = data['sigma2_g'].astype(str)
        
        with pytest.raises(ValueError, match="must be numeric"):
            ConvergenceTrace(data, components=['sigma2_g', 'sigma2_b'])
            
    def test_insufficient_data(self):
        with pytest.raises(ValueError, match="Insufficient data"):
            ConvergenceTrace(self.data.iloc[:1])
            
    def test_missing_iteration_column(self):
        """Rows are numbered when the log has no iteration column."""
        with pytest.warns(UserWarning, match="No iteration column"):
            trace = ConvergenceTrace(self.data.drop(columns='iteration'))
            
        assert trace.iteration_col == 'iteration'
        np.testing.assert_array_equal(trace.iterations, [1, 2, 3, 4, 5])
        assert trace.component_cols == ['sigma2_g', 'sigma2_b']
        
    def test_missing_loglik_rows_dropped(self):
        data = self.data.copy()
        data.loc[2, 'loglik'] = np.nan
        
        with pytest.warns(UserWarning, match="Dropping 1 rows"):
            trace = ConvergenceTrace(data)
            
        assert trace.n_iter == 4
        assert 3 not in trace.iterations
        
    def test_unsorted_and_duplicate_iterations(self):
        data = pd.concat([self.data.iloc[[3, 0, 2, 1, 4]], self.data.iloc[[2]]])
        data.iloc[-1, data.columns.get_loc('loglik')] = -1240.0
        
        with pytest.warns(UserWarning, match="Duplicate iteration"):
            trace = ConvergenceTrace(data)
            
        np.testing.assert_array_equal(trace.iterations, [1, 2, 3, 4, 5])
        assert trace.loglik[2] == -1240.0
        
    def test_original_data_not_modified(self):
        data = self.data.drop(columns='iteration')
        with pytest.warns(UserWarning):
            ConvergenceTrace(data)
            
        assert 'iteration' not in data.columns
        
    def test_summary_output(self, capsys):
        trace = ConvergenceTrace(self.data)
        trace.summary()
        out = capsys.readouterr().out
        
        assert 'REML Convergence Trace Summary' in out
        assert 'sigma2_g' in out
        assert 'Path Checks' in out
        
    def test_monitoring(self, capsys):
        ConvergenceTrace(self.data, control=TraceControl(monitoring=True))
        
        assert 'Loaded convergence log: 5 iterations' in capsys.readouterr().out
        
    def test_summary_table(self):
        trace = ConvergenceTrace(self.data)
        table = trace.summary_table()
        
        assert list(table.index) == ['sigma2_g', 'sigma2_b', 'residual', 'loglik']
        assert table.loc['sigma2_g', 'count'] == 5
        
    def test_repr(self):
        trace = ConvergenceTrace(self.data)
        
        assert 'n_iter=5' in repr(trace)


class TestReadConvergenceLog:
    """Test reading delimited log files."""
    
    def setup_method(self):
        self.data = generate_convergence_log(n_iter=8, seed=0)
        
    def test_comma_separated(self, tmp_path):
        path = tmp_path / 'log.csv'
        self.data.to_csv(path, index=False)
        
        trace = ConvergenceTrace.from_file(path)
        
        assert trace.n_iter == 8
        assert trace.component_cols == ['sigma2_1', 'sigma2_2']
        np.testing.assert_allclose(trace.loglik, self.data['loglik'].values)
        
    def test_tab_separated(self, tmp_path):
        path = tmp_path / 'log.txt'
        self.data.to_csv(path, index=False, sep='\t')
        
        log = read_convergence_log(path)
        
        assert list(log.columns) == list(self.data.columns)
        
    def test_semicolon_separated(self, tmp_path):
        path = tmp_path / 'log.txt'
        self.data.to_csv(path, index=False, sep=';')
        
        log = read_convergence_log(path)
        
        assert len(log) == 8
        assert 'loglik' in log.columns
        
    def test_whitespace_separated(self, tmp_path):
        path = tmp_path / 'log.txt'
        lines = ['iter   sigma2_g   sigma2_e   logl',
                 '1      1.50       4.00       -30.2',
                 '2      1.90       3.60       -29.1',
                 '# restarted from iteration 2',
                 '3      2.05       3.45       -28.9']
        path.write_text('\n'.join(lines) + '\n')
        
        trace = ConvergenceTrace.from_file(path, sep='whitespace')
        
        assert trace.n_iter == 3
        assert trace.residual_col == 'sigma2_e'
        assert trace.loglik_col == 'logl'
        assert trace.component_cols == ['sigma2_g']

    def test_aligned_whitespace_detected(self, tmp_path):
        """Column-aligned logs load without naming the delimiter."""
        path = tmp_path / 'log.txt'
        lines = ['# ASReml iteration history',
                 'iter   sigma2_g   sigma2_e   logl',
                 '1      1.50       4.00       -30.2',
                 '2      1.90       3.60       -29.1',
                 '3      2.05       3.45       -28.9']
        path.write_text('\n'.join(lines) + '\n')

        log = read_convergence_log(path)
        trace = ConvergenceTrace.from_file(path)

        assert list(log.columns) == ['iter', 'sigma2_g', 'sigma2_e', 'logl']
        assert not any(col.startswith('Unnamed') for col in log.columns)
        assert trace.component_cols == ['sigma2_g']
        assert trace.residual_col == 'sigma2_e'
        np.testing.assert_allclose(trace.loglik, [-30.2, -29.1, -28.9])

    def test_single_space_detected(self, tmp_path):
        path = tmp_path / 'log.txt'
        path.write_text('iter sigma2_g sigma2_e logl\n1 1.5 4.0 -30.2\n2 1.9 3.6 -29.1\n')

        log = read_convergence_log(path)

        assert list(log.columns) == ['iter', 'sigma2_g', 'sigma2_e', 'logl']
        assert len(log) == 2

    def test_empty_columns_not_components(self):
        data = pd.DataFrame({
            'iter': [1, 2, 3],
            'Unnamed: 1': [0.5, 0.6, 0.7],
            'sigma2_g': [1.5, 1.9, 2.05],
            'blank': [np.nan, np.nan, np.nan],
            'logl': [-30.2, -29.1, -28.9],
        })

        columns = resolve_columns(data)

        assert columns['components'] == ['sigma2_g']

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_convergence_log(tmp_path / 'absent.csv')


class TestTraceControl:
    """Test control parameters."""
    
    def test_defaults(self):
        control = TraceControl()
        
        assert control.stagnation_tol == 1e-3
        assert control.stagnation_run == 3
        assert control.grid_resolution == 50
        assert control.interp_method == 'cubic'
        assert not control.monitoring
        
    def test_invalid_values(self):
        with pytest.raises(ValueError, match="interp_method"):
            TraceControl(interp_method='spline')
        with pytest.raises(ValueError, match="grid_resolution"):
            TraceControl(grid_resolution=1)
            
    def test_repr(self):
        assert 'TraceControl(' in repr(TraceControl())

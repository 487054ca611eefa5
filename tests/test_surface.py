"""
Test cases for likelihood surface reconstruction.
"""

import pytest
import numpy as np
import pandas as pd

import sys
import os
# Add parent directory to path to find remltrace package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from remltrace.surface import (
    interpolate_surface, likelihood_surface, LikelihoodSurface, QuadraticFit
)
from remltrace.control import TraceControl
from remltrace.core import ConvergenceTrace
from remltrace.datasets import (
    generate_convergence_log, likelihood_grid_points, likelihood_function, load_example_log
)


def _grid_surface(bimodal=False, n=21):
    """Surface whose grid coincides with the sampled points."""
    axis = np.linspace(0.0, 100.0, n)
    X, Y = np.meshgrid(axis, axis)
    Z = likelihood_function(X, Y, bimodal=bimodal)
    return LikelihoodSurface(X.ravel(), Y.ravel(), Z.ravel(), axis, axis, Z,
                             method='exact', x_label='sigma2_1', y_label='sigma2_2')


class TestInterpolateSurface:
    """Test scattered-data interpolation onto a grid."""
    
    def test_grid_shape(self):
        points = likelihood_grid_points(n=150, seed=1)
        surface = interpolate_surface(points['sigma2_1'], points['sigma2_2'],
                                      points['loglik'], resolution=30)
        
        assert surface.Zi.shape == (30, 30)
        assert surface.Xi.shape == (30, 30)
        assert len(surface.xi) == 30
        assert surface.method == 'cubic'
        assert surface.xi.min() == pytest.approx(points['sigma2_1'].min())
        assert surface.yi.max() == pytest.approx(points['sigma2_2'].max())
        
    def test_values_recovered_at_nodes(self):
        """Linear interpolation reproduces the sampled values on the nodes."""
        axis = np.linspace(0.0, 100.0, 11)
        X, Y = np.meshgrid(axis, axis)
        Z = likelihood_function(X, Y)
        surface = interpolate_surface(X.ravel(), Y.ravel(), Z.ravel(),
                                      resolution=11, method='linear')
        
        finite = np.isfinite(surface.Zi)
        assert finite.sum() > 100
        np.testing.assert_allclose(surface.Zi[finite], Z[finite], atol=1e-8)
        
    def test_argmax_near_peak(self):
        points = likelihood_grid_points(n=400, seed=2)
        surface = interpolate_surface(points['sigma2_1'], points['sigma2_2'],
                                      points['loglik'], resolution=60)
        x, y, z = surface.argmax()
        
        assert abs(x - 45.0) < 5.0
        assert abs(y - 55.0) < 5.0
        assert z == pytest.approx(-1240.0, abs=0.05)
        
    def test_outside_hull_is_nan(self):
        x = np.array([0.0, 1.0, 0.0, 1.0, 0.5])
        y = np.array([0.0, 0.0, 1.0, 1.0, 3.0])
        z = -(x ** 2 + y ** 2)
        surface = interpolate_surface(x, y, z, resolution=20, method='linear')
        
        # top-left corner lies outside the convex hull
        assert np.isnan(surface.Zi[-1, 0])
        
    def test_padding_extends_grid(self):
        x = np.array([0.0, 10.0, 0.0, 10.0])
        y = np.array([0.0, 0.0, 10.0, 10.0])
        z = np.array([1.0, 2.0, 3.0, 4.0])
        surface = interpolate_surface(x, y, z, resolution=5, method='linear', padding=0.1)
        
        assert surface.xi[0] == pytest.approx(-1.0)
        assert surface.xi[-1] == pytest.approx(11.0)
        
    def test_duplicate_points_averaged(self):
        x = np.array([0.0, 1.0, 0.0, 1.0, 1.0])
        y = np.array([0.0, 0.0, 1.0, 1.0, 1.0])
        z = np.array([1.0, 2.0, 3.0, 4.0, 6.0])
        surface = interpolate_surface(x, y, z, resolution=3, method='linear')
        
        assert len(surface.z) == 4
        assert surface.Zi[-1, -1] == pytest.approx(5.0)
        
    def test_collinear_points_fall_back(self):
        """Points on a line cannot be triangulated; nearest is used."""
        x = np.array([0.0, 1.0, 2.0, 3.0])
        y = np.array([0.0, 1.0, 2.0, 3.0])
        z = np.array([-4.0, -3.0, -2.0, -1.0])
        
        with pytest.warns(UserWarning, match="falling back"):
            surface = interpolate_surface(x, y, z, resolution=10)
            
        assert surface.method == 'nearest'
        assert np.all(np.isfinite(surface.Zi))
        
    def test_input_validation(self):
        with pytest.raises(ValueError, match="at least 3 distinct points"):
            interpolate_surface([0.0, 1.0], [0.0, 1.0], [1.0, 2.0])
        with pytest.raises(ValueError, match="same length"):
            interpolate_surface([0.0, 1.0, 2.0], [0.0, 1.0], [1.0, 2.0, 3.0])
            
    def test_non_finite_points_dropped(self):
        x = np.array([0.0, 1.0, 0.0, 1.0, np.nan])
        y = np.array([0.0, 0.0, 1.0, 1.0, 0.5])
        z = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        surface = interpolate_surface(x, y, z, resolution=4, method='linear')
        
        assert len(surface.z) == 4


class TestLocalMaxima:
    """Test counting of maxima on the grid."""
    
    def test_unimodal(self):
        surface = _grid_surface(bimodal=False)
        maxima = surface.local_maxima()
        
        assert len(maxima) == 1
        assert surface.is_unimodal()
        assert maxima.loc[0, 'x'] == pytest.approx(45.0)
        assert maxima.loc[0, 'y'] == pytest.approx(55.0)
        assert maxima.loc[0, 'loglik'] == pytest.approx(-1240.0)
        
    def test_bimodal(self):
        surface = _grid_surface(bimodal=True)
        maxima = surface.local_maxima()
        
        assert surface.n_maxima() == 2
        assert not surface.is_unimodal()
        # sorted with the global maximum first
        assert maxima.loc[0, 'x'] == pytest.approx(25.0)
        assert maxima.loc[0, 'y'] == pytest.approx(30.0)
        assert maxima.loc[1, 'x'] == pytest.approx(75.0)
        assert maxima.loc[1, 'y'] == pytest.approx(70.0)
        assert maxima.loc[0, 'loglik'] > maxima.loc[1, 'loglik']
        
    def test_min_prominence_filters(self):
        surface = _grid_surface(bimodal=True)
        prominence = surface.local_maxima()['prominence']
        threshold = (prominence.min() + prominence.max()) / 2
        
        assert prominence.min() < prominence.max()
        assert surface.n_maxima(min_prominence=threshold) == 1
        
    def test_plateau_counts_once(self):
        axis = np.arange(5, dtype=float)
        Z = np.zeros((5, 5))
        Z[2, 2] = Z[2, 3] = 1.0
        surface = LikelihoodSurface(np.zeros(3), np.zeros(3), np.zeros(3),
                                    axis, axis, Z, method='exact')
        
        assert surface.n_maxima() == 1
        
    def test_flat_surface(self):
        axis = np.arange(4, dtype=float)
        surface = LikelihoodSurface(np.zeros(3), np.zeros(3), np.zeros(3),
                                    axis, axis, np.full((4, 4), -10.0), method='exact')
        
        assert surface.n_maxima() == 1
        
    def test_all_nan_surface(self):
        axis = np.arange(3, dtype=float)
        surface = LikelihoodSurface(np.zeros(3), np.zeros(3), np.zeros(3),
                                    axis, axis, np.full((3, 3), np.nan), method='exact')
        
        assert surface.local_maxima().empty
        with pytest.raises(ValueError, match="no finite values"):
            surface.argmax()
            
    def test_interior_maxima_not_on_boundary(self):
        maxima = _grid_surface(bimodal=True).local_maxima()

        assert 'on_boundary' in maxima.columns
        assert not maxima['on_boundary'].any()

    def test_corner_maximum_counts_once(self):
        """A plane rises to a corner: one maximum, cut off by the grid."""
        axis = np.arange(6, dtype=float)
        X, Y = np.meshgrid(axis, axis)
        surface = LikelihoodSurface(X.ravel(), Y.ravel(), (X + Y).ravel(),
                                    axis, axis, X + Y, method='exact')
        maxima = surface.local_maxima()

        assert maxima.loc[0, 'on_boundary']
        assert maxima.loc[0, 'x'] == pytest.approx(5.0)
        assert surface.n_maxima() == 1
        assert surface.is_unimodal()

    def test_boundary_global_and_interior_peak(self):
        axis = np.arange(7, dtype=float)
        X, Y = np.meshgrid(axis, axis)
        Z = -((X - 3.0) ** 2 + (Y - 3.0) ** 2)
        Z[0, 6] = 5.0
        surface = LikelihoodSurface(X.ravel(), Y.ravel(), Z.ravel(),
                                    axis, axis, Z, method='exact')
        maxima = surface.local_maxima()

        assert len(maxima) == 2
        assert maxima.loc[0, 'on_boundary']
        assert not maxima.loc[1, 'on_boundary']
        assert surface.n_maxima() == 2

    def test_lower_edge_maxima_ignored(self):
        """Peaks cut off by missing cells below the global maximum are not counted."""
        axis = np.arange(7, dtype=float)
        X, Y = np.meshgrid(axis, axis)
        Z = X + Y
        Z[3, 0] = 20.0
        Z[2:5, 1] = np.nan
        surface = LikelihoodSurface(X.ravel(), Y.ravel(), Z.ravel(),
                                    axis, axis, Z, method='exact')
        maxima = surface.local_maxima()

        assert len(maxima) == 2
        assert maxima['on_boundary'].all()
        assert surface.n_maxima() == 1

    @pytest.mark.parametrize('seed', [1, 42])
    @pytest.mark.parametrize('method', ['cubic', 'linear'])
    def test_trace_surface_unimodal(self, seed, method):
        """Cells along the convex hull of the path do not count as maxima."""
        trace = ConvergenceTrace(generate_convergence_log(n_iter=25, seed=seed),
                                 control=TraceControl(interp_method=method))
        surface = trace.surface()
        maxima = surface.local_maxima()

        assert np.isnan(surface.Zi).any()
        assert maxima['on_boundary'].all()
        assert surface.n_maxima() == 1
        assert surface.is_unimodal()

    def test_example_log_unimodal(self):
        trace = ConvergenceTrace(load_example_log())
        surface = trace.surface()
        x, y, z = surface.argmax()

        assert surface.is_unimodal()
        assert z == pytest.approx(trace.loglik.max(), abs=0.05)

    def test_to_frame(self):
        surface = _grid_surface(n=5)
        frame = surface.to_frame()
        
        assert list(frame.columns) == ['x', 'y', 'loglik']
        assert len(frame) == 25


class TestQuadraticFit:
    """Test the quadratic approximation of the surface."""
    
    def test_exact_quadratic(self):
        points = likelihood_grid_points(n=100, seed=3)
        surface = interpolate_surface(points['sigma2_1'], points['sigma2_2'],
                                      points['loglik'], resolution=10)
        fit = surface.quadratic_fit()
        
        assert isinstance(fit, QuadraticFit)
        assert fit.r_squared == pytest.approx(1.0, abs=1e-8)
        np.testing.assert_allclose(fit.hessian, [[-1 / 400, 0.0], [0.0, -1 / 625]], atol=1e-8)
        np.testing.assert_allclose(fit.stationary_point, (45.0, 55.0), atol=1e-4)
        assert fit.is_concave
        assert np.all(fit.eigenvalues < 0)
        
    def test_convex_surface_not_concave(self):
        x, y = np.meshgrid(np.linspace(-1, 1, 5), np.linspace(-1, 1, 5))
        z = x.ravel() ** 2 + y.ravel() ** 2
        surface = interpolate_surface(x.ravel(), y.ravel(), z, resolution=5, method='linear')
        
        assert not surface.quadratic_fit().is_concave
        
    def test_too_few_points(self):
        x = np.array([0.0, 1.0, 0.0, 1.0])
        y = np.array([0.0, 0.0, 1.0, 1.0])
        surface = interpolate_surface(x, y, np.ones(4), resolution=3, method='linear')
        
        with pytest.raises(ValueError, match="at least 6 points"):
            surface.quadratic_fit()


class TestLikelihoodSurface:
    """Test surface reconstruction from a convergence trace."""
    
    def setup_method(self):
        self.trace = ConvergenceTrace(
            generate_convergence_log(n_iter=15, seed=4),
            control=TraceControl(grid_resolution=25, interp_method='linear')
        )
        
    def test_default_axes(self):
        surface = likelihood_surface(self.trace)
        
        assert surface.x_label == 'sigma2_1'
        assert surface.y_label == 'sigma2_2'
        assert surface.z_label == 'loglik'
        assert surface.Zi.shape == (25, 25)
        assert surface.path.shape == (15, 3)
        np.testing.assert_allclose(surface.path[:, 2], self.trace.loglik)
        
    def test_explicit_axes(self):
        surface = self.trace.surface(x='sigma2_2', y='residual')
        
        assert surface.x_label == 'sigma2_2'
        assert surface.y_label == 'residual'
        
    def test_single_component_uses_residual(self):
        trace = ConvergenceTrace(generate_convergence_log(n_iter=12, n_components=1, seed=5))
        surface = trace.surface()
        
        assert surface.x_label == 'sigma2_1'
        assert surface.y_label == 'residual'
        
    def test_only_x_given(self):
        surface = self.trace.surface(x='residual')
        
        assert surface.x_label == 'residual'
        assert surface.y_label == 'sigma2_1'
        
    def test_missing_parameter(self):
        with pytest.raises(ValueError, match="Missing columns"):
            self.trace.surface(x='sigma2_9', y='sigma2_1')
            
    def test_needs_two_parameters(self):
        data = pd.DataFrame({'iteration': [1, 2, 3], 'vg': [1.0, 2.0, 3.0],
                             'loglik': [-3.0, -2.0, -1.0]})
        trace = ConvergenceTrace(data)
        
        with pytest.raises(ValueError, match="Need two parameters"):
            trace.surface()
            
    def test_final_iterate_near_grid_maximum(self):
        surface = self.trace.surface()
        x, y, z = surface.argmax()
        
        assert z <= self.trace.loglik.max() + 1e-8
        assert z == pytest.approx(self.trace.loglik.max(), abs=1.0)

"""
Likelihood surface reconstruction from scattered REML iterates.

The (variance1, variance2, log-likelihood) triples visited by the optimizer
are interpolated onto a regular grid so the surface can be drawn as a
contour or 3-D plot and inspected for one or several maxima.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass
from scipy.interpolate import griddata
from scipy.spatial import QhullError
from scipy import ndimage
from sklearn.linear_model import LinearRegression
from sklearn.preprocessing import PolynomialFeatures
from typing import Optional, Tuple

from .control import TraceControl


_FALLBACK = {'cubic': 'linear', 'linear': 'nearest'}


@dataclass
class QuadraticFit:
    """
    Second-order polynomial approximation of the log-likelihood.

    z = c0 + c1*x + c2*y + c3*x^2 + c4*x*y + c5*y^2

    Attributes
    ----------
    coefficients : np.ndarray
        (c0, c1, c2, c3, c4, c5)
    r_squared : float
        Coefficient of determination of the fit
    hessian : np.ndarray
        2x2 matrix of second derivatives
    stationary_point : tuple or None
        (x, y) where the gradient vanishes, None if the Hessian is singular
    """
    coefficients: np.ndarray
    r_squared: float
    hessian: np.ndarray
    stationary_point: Optional[Tuple[float, float]]

    @property
    def eigenvalues(self) -> np.ndarray:
        return np.linalg.eigvalsh(self.hessian)

    @property
    def is_concave(self) -> bool:
        """Both curvatures negative: a single interior maximum."""
        return bool(np.all(self.eigenvalues < 0))


class LikelihoodSurface:
    """
    Log-likelihood interpolated onto a regular grid.

    Attributes
    ----------
    x, y, z : np.ndarray
        Scattered source points (duplicates averaged)
    xi, yi : np.ndarray
        Grid axes
    Xi, Yi, Zi : np.ndarray
        Mesh and interpolated values (NaN outside the convex hull)
    method : str
        Interpolation method actually used
    """

    def __init__(self, x: np.ndarray, y: np.ndarray, z: np.ndarray,
                 xi: np.ndarray, yi: np.ndarray, Zi: np.ndarray,
                 method: str, x_label: str = 'x', y_label: str = 'y',
                 z_label: str = 'log-likelihood'):
        self.x = x
        self.y = y
        self.z = z
        self.xi = xi
        self.yi = yi
        self.Xi, self.Yi = np.meshgrid(xi, yi)
        self.Zi = Zi
        self.method = method
        self.x_label = x_label
        self.y_label = y_label
        self.z_label = z_label
        # optimizer path in visiting order, set by likelihood_surface()
        self.path = None

    def __repr__(self):
        return (f"LikelihoodSurface({self.x_label} x {self.y_label}, "
                f"grid={len(self.xi)}x{len(self.yi)}, method='{self.method}')")

    def argmax(self) -> Tuple[float, float, float]:
        """Grid location and value of the highest interpolated point."""
        if not np.any(np.isfinite(self.Zi)):
            raise ValueError("Surface has no finite values")
        row, col = np.unravel_index(np.nanargmax(self.Zi), self.Zi.shape)
        return float(self.xi[col]), float(self.yi[row]), float(self.Zi[row, col])

    def local_maxima(self, size: int = 3, min_prominence: float = 0.0) -> pd.DataFrame:
        """
        Local maxima of the interpolated grid.

        Parameters
        ----------
        size : int, default=3
            Side length of the square neighbourhood, in grid cells
        min_prominence : float, default=0.0
            Maxima rising less than this above their neighbourhood minimum
            are dropped

        Returns
        -------
        pd.DataFrame
            Columns x, y, loglik, prominence, on_boundary sorted by loglik
            descending. on_boundary marks maxima whose neighbourhood reaches
            the grid edge or a cell outside the convex hull of the iterates;
            there the surface is cut off rather than peaked.
        """
        columns = ['x', 'y', 'loglik', 'prominence', 'on_boundary']
        Z = np.where(np.isfinite(self.Zi), self.Zi, -np.inf)
        if not np.any(np.isfinite(Z)):
            return pd.DataFrame(columns=columns)

        peak_mask = (ndimage.maximum_filter(Z, size=size, mode='nearest') == Z) & np.isfinite(Z)
        Z_floor = np.where(np.isfinite(self.Zi), self.Zi, np.inf)
        window_min = ndimage.minimum_filter(Z_floor, size=size, mode='nearest')
        # beyond the grid edge counts as missing
        missing = (~np.isfinite(self.Zi)).astype(np.uint8)
        near_edge = ndimage.maximum_filter(missing, size=size, mode='constant', cval=1) > 0

        finite = Z[np.isfinite(Z)]
        flat = finite.max() == finite.min()

        # a plateau of equal maxima counts once
        labels, n_labels = ndimage.label(peak_mask, structure=np.ones((3, 3)))
        rows = []
        for label in range(1, n_labels + 1):
            region = labels == label
            r, c = np.argwhere(region)[0]
            drops = Z[region] - window_min[region]
            drops = drops[np.isfinite(drops)]
            prominence = float(drops.max()) if drops.size else 0.0
            # flat stretches are not maxima unless the whole surface is flat
            if (prominence <= 0 and not flat) or prominence < min_prominence:
                continue
            rows.append({
                'x': float(self.xi[c]),
                'y': float(self.yi[r]),
                'loglik': float(Z[r, c]),
                'prominence': prominence,
                'on_boundary': bool(near_edge[region].any()),
            })

        result = pd.DataFrame(rows, columns=columns)
        return result.sort_values('loglik', ascending=False).reset_index(drop=True)

    def n_maxima(self, size: int = 3, min_prominence: float = 0.0) -> int:
        """
        Number of distinct maxima: interior grid maxima plus the global
        maximum when it sits on the boundary.
        """
        maxima = self.local_maxima(size=size, min_prominence=min_prominence)
        if maxima.empty:
            return 0
        on_boundary = maxima['on_boundary'].astype(bool)
        n_interior = int((~on_boundary).sum())
        top = float(np.nanmax(self.Zi))
        interior_top = (maxima.loc[~on_boundary, 'loglik'] == top).any()
        boundary_top = (maxima.loc[on_boundary, 'loglik'] == top).any()
        return n_interior + int(boundary_top and not interior_top)

    def is_unimodal(self, size: int = 3, min_prominence: float = 0.0) -> bool:
        return self.n_maxima(size=size, min_prominence=min_prominence) == 1

    def quadratic_fit(self) -> QuadraticFit:
        """Least-squares quadratic approximation to the source points."""
        if len(self.z) < 6:
            raise ValueError("Need at least 6 points for a quadratic fit")

        X = np.column_stack([self.x, self.y])
        poly = PolynomialFeatures(degree=2, include_bias=False)
        features = poly.fit_transform(X)
        reg = LinearRegression().fit(features, self.z)

        # feature order: x, y, x^2, x*y, y^2
        b1, b2, b11, b12, b22 = reg.coef_
        coefficients = np.array([reg.intercept_, b1, b2, b11, b12, b22])
        hessian = np.array([[2 * b11, b12], [b12, 2 * b22]])

        try:
            stationary = np.linalg.solve(hessian, -np.array([b1, b2]))
            stationary_point = (float(stationary[0]), float(stationary[1]))
        except np.linalg.LinAlgError:
            stationary_point = None

        return QuadraticFit(
            coefficients=coefficients,
            r_squared=float(reg.score(features, self.z)),
            hessian=hessian,
            stationary_point=stationary_point,
        )

    def to_frame(self) -> pd.DataFrame:
        """Long-format grid: x, y, loglik."""
        return pd.DataFrame({
            'x': self.Xi.ravel(),
            'y': self.Yi.ravel(),
            'loglik': self.Zi.ravel(),
        })


def _average_duplicates(x: np.ndarray, y: np.ndarray, z: np.ndarray):
    points = pd.DataFrame({'x': x, 'y': y, 'z': z})
    points = points.groupby(['x', 'y'], as_index=False, sort=False)['z'].mean()
    return points['x'].values, points['y'].values, points['z'].values


def interpolate_surface(x, y, z, resolution: int = 50, method: str = 'cubic',
                        padding: float = 0.0, x_label: str = 'x',
                        y_label: str = 'y') -> LikelihoodSurface:
    """
    Interpolate scattered log-likelihood values onto a regular grid.

    Parameters
    ----------
    x, y : array-like
        Variance component values at each iterate
    z : array-like
        Log-likelihood at each iterate
    resolution : int, default=50
        Number of grid points per axis
    method : str, default='cubic'
        griddata method; falls back to 'linear' then 'nearest' when the
        points do not support it
    padding : float, default=0.0
        Fraction of each axis range added on both sides of the grid

    Returns
    -------
    LikelihoodSurface
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    z = np.asarray(z, dtype=float)
    if not (len(x) == len(y) == len(z)):
        raise ValueError("x, y and z must have the same length")

    valid = np.isfinite(x) & np.isfinite(y) & np.isfinite(z)
    x, y, z = _average_duplicates(x[valid], y[valid], z[valid])
    if len(z) < 3:
        raise ValueError("Need at least 3 distinct points to interpolate a surface")

    x_pad = padding * (x.max() - x.min())
    y_pad = padding * (y.max() - y.min())
    xi = np.linspace(x.min() - x_pad, x.max() + x_pad, resolution)
    yi = np.linspace(y.min() - y_pad, y.max() + y_pad, resolution)
    Xi, Yi = np.meshgrid(xi, yi)

    while True:
        try:
            Zi = griddata((x, y), z, (Xi, Yi), method=method, fill_value=np.nan)
            break
        except (QhullError, ValueError) as e:
            if method not in _FALLBACK:
                raise
            fallback = _FALLBACK[method]
            warnings.warn(f"'{method}' interpolation failed ({str(e).splitlines()[0]}); "
                          f"falling back to '{fallback}'")
            method = fallback

    return LikelihoodSurface(x, y, z, xi, yi, Zi, method=method,
                             x_label=x_label, y_label=y_label)


def likelihood_surface(trace, x: Optional[str] = None, y: Optional[str] = None,
                       control: Optional[TraceControl] = None,
                       padding: float = 0.0) -> LikelihoodSurface:
    """
    Reconstruct the likelihood surface over two parameters of a trace.

    Parameters
    ----------
    trace : ConvergenceTrace
        Loaded convergence log
    x, y : str, optional
        Parameter columns for the axes. Defaults to the first two variance
        components, or the single component against the residual.
    control : TraceControl, optional
        Grid resolution and interpolation method
    padding : float, default=0.0
        Fractional padding of the grid range

    Returns
    -------
    LikelihoodSurface
        With `path` set to the iterates in visiting order
    """
    control = control or trace.control
    params = trace.parameters
    if x is None or y is None:
        defaults = [col for col in params.columns if col not in (x, y)]
        if x is None:
            x = defaults.pop(0) if defaults else None
        if y is None:
            y = defaults.pop(0) if defaults else None
    if x is None or y is None:
        raise ValueError("Need two parameters for a surface; log has "
                         f"{list(params.columns)}")
    missing_cols = [col for col in (x, y) if col not in params.columns]
    if missing_cols:
        raise ValueError(f"Missing columns in data: {missing_cols}")

    if control.monitoring:
        print(f"Interpolating log-likelihood over {x} x {y} "
              f"({control.grid_resolution}x{control.grid_resolution}, {control.interp_method})")

    surface = interpolate_surface(
        params[x].values, params[y].values, trace.loglik,
        resolution=control.grid_resolution, method=control.interp_method,
        padding=padding, x_label=x, y_label=y,
    )
    surface.z_label = trace.loglik_col
    surface.path = np.column_stack([params[x].values, params[y].values, trace.loglik])
    return surface

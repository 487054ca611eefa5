"""
Plotting functions for REML convergence traces and likelihood surfaces.
"""

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
from typing import Optional, Tuple, Union

from .diagnostics import PathDiagnostics, diagnose_path
from .surface import LikelihoodSurface, likelihood_surface


def plot_trace(trace: 'ConvergenceTrace', which: str = 'all',
               figsize: Tuple[int, int] = (12, 8), **kwargs) -> plt.Figure:
    """
    Plot a REML convergence trace.

    Parameters
    ----------
    trace : ConvergenceTrace
        Loaded convergence log
    which : str, default='all'
        Type of plot: 'surface', 'surface3d', 'loglik', 'parameters', 'all'
    figsize : tuple, default=(12, 8)
        Figure size
    **kwargs
        Passed to likelihood_surface for the surface plots (x, y, padding)

    Returns
    -------
    plt.Figure
        Matplotlib figure object
    """
    if which == 'all':
        return _plot_all(trace, figsize, **kwargs)
    elif which == 'surface':
        return plot_surface_2d(likelihood_surface(trace, **kwargs), figsize=figsize)
    elif which == 'surface3d':
        return plot_surface_3d(likelihood_surface(trace, **kwargs), figsize=figsize)
    elif which == 'loglik':
        return plot_loglik_path(trace, figsize=figsize)
    elif which == 'parameters':
        return plot_parameter_paths(trace, figsize=figsize)
    else:
        raise ValueError(f"Unknown plot type: {which}")


def _plot_all(trace: 'ConvergenceTrace', figsize: Tuple[int, int], **kwargs) -> plt.Figure:
    """Log-likelihood path, parameter paths and surface contour in one figure."""
    fig = plt.figure(figsize=figsize)
    gs = fig.add_gridspec(2, 2, hspace=0.35, wspace=0.3)

    ax1 = fig.add_subplot(gs[0, 0])
    plot_loglik_path(trace, ax=ax1)

    ax2 = fig.add_subplot(gs[1, 0])
    plot_parameter_paths(trace, ax=ax2)

    ax3 = fig.add_subplot(gs[:, 1])
    if trace.parameters.shape[1] >= 2:
        plot_surface_2d(likelihood_surface(trace, **kwargs), ax=ax3)
    else:
        ax3.text(0.5, 0.5, 'Surface needs two parameters', transform=ax3.transAxes,
                 ha='center', va='center')
        ax3.set_axis_off()

    return fig


def plot_surface_2d(surface: LikelihoodSurface, levels: int = 20, show_path: bool = True,
                    show_maxima: bool = True, figsize: Optional[Tuple[int, int]] = None,
                    ax: Optional[plt.Axes] = None) -> plt.Figure:
    """
    Contour plot of an interpolated likelihood surface.

    Parameters
    ----------
    surface : LikelihoodSurface
        Interpolated surface
    levels : int, default=20
        Number of contour levels
    show_path : bool, default=True
        Draw the optimizer path with start and end markers
    show_maxima : bool, default=True
        Mark local maxima of the grid
    figsize : tuple, optional
        Figure size when a new figure is created
    ax : plt.Axes, optional
        Axes to draw into

    Returns
    -------
    plt.Figure
        Matplotlib figure object
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize or (8, 6))
    else:
        fig = ax.get_figure()

    Zi = np.ma.masked_invalid(surface.Zi)
    if Zi.count() > 0 and Zi.max() > Zi.min():
        contour = ax.contourf(surface.Xi, surface.Yi, Zi, levels=levels, cmap='viridis', alpha=0.85)
        ax.contour(surface.Xi, surface.Yi, Zi, levels=levels, colors='k', linewidths=0.4, alpha=0.5)
        plt.colorbar(contour, ax=ax, label=surface.z_label)

    if show_path and surface.path is not None:
        px, py = surface.path[:, 0], surface.path[:, 1]
        ax.plot(px, py, '-', color='white', linewidth=1.2, alpha=0.9)
        ax.scatter(px, py, c='white', s=14, edgecolors='black', linewidth=0.5, zorder=3)
        for i in range(len(px) - 1):
            ax.annotate('', xy=(px[i + 1], py[i + 1]), xytext=(px[i], py[i]),
                        arrowprops=dict(arrowstyle='->', color='white', lw=0.8))
        ax.scatter(px[0], py[0], marker='o', c='tab:blue', s=60, edgecolors='black',
                   zorder=4, label='Start')
        ax.scatter(px[-1], py[-1], marker='*', c='tab:red', s=160, edgecolors='black',
                   zorder=4, label='Final')
    else:
        ax.scatter(surface.x, surface.y, c='white', s=10, alpha=0.7,
                   edgecolors='black', linewidth=0.5)

    if show_maxima:
        maxima = surface.local_maxima()
        interior = maxima[~maxima['on_boundary'].astype(bool)]
        edge = maxima[maxima['on_boundary'].astype(bool)]
        if len(interior) > 0:
            ax.scatter(interior['x'], interior['y'], marker='^', c='orange', s=70,
                       edgecolors='black', zorder=5, label=f'Grid maxima ({len(interior)})')
        if len(edge) > 0:
            ax.scatter(edge['x'], edge['y'], marker='^', facecolors='none', s=70,
                       edgecolors='orange', zorder=5, label=f'Edge maxima ({len(edge)})')

    ax.set_xlabel(surface.x_label)
    ax.set_ylabel(surface.y_label)
    ax.set_title('Log-likelihood Surface')
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc='best', fontsize='small')

    return fig


def plot_surface_3d(surface: LikelihoodSurface, elev: float = 30, azim: float = -60,
                    show_path: bool = True,
                    figsize: Optional[Tuple[int, int]] = None) -> plt.Figure:
    """
    3-D surface plot of an interpolated likelihood surface.

    Parameters
    ----------
    surface : LikelihoodSurface
        Interpolated surface
    elev, azim : float
        Viewing angles in degrees
    show_path : bool, default=True
        Draw the optimizer path on the surface
    figsize : tuple, optional
        Figure size

    Returns
    -------
    plt.Figure
        Matplotlib figure object
    """
    fig = plt.figure(figsize=figsize or (10, 7))
    ax = fig.add_subplot(111, projection='3d')

    Zi = np.ma.masked_invalid(surface.Zi)
    surf = ax.plot_surface(surface.Xi, surface.Yi, Zi, cmap='viridis', alpha=0.8,
                           linewidth=0, antialiased=True)
    fig.colorbar(surf, ax=ax, shrink=0.6, label=surface.z_label)

    if show_path and surface.path is not None:
        ax.plot(surface.path[:, 0], surface.path[:, 1], surface.path[:, 2],
                'o-', color='red', markersize=3, linewidth=1.2, label='Optimizer path')
        ax.legend(loc='upper left', fontsize='small')

    ax.set_xlabel(surface.x_label)
    ax.set_ylabel(surface.y_label)
    ax.set_zlabel(surface.z_label)
    ax.set_title('Log-likelihood Surface')
    ax.view_init(elev=elev, azim=azim)

    return fig


def plot_loglik_path(trace: 'ConvergenceTrace', diagnostics: Optional[PathDiagnostics] = None,
                     figsize: Optional[Tuple[int, int]] = None,
                     ax: Optional[plt.Axes] = None) -> plt.Figure:
    """Log-likelihood against iteration, with decreases highlighted."""
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize or (8, 5))
    else:
        fig = ax.get_figure()

    diagnostics = diagnostics or diagnose_path(trace)
    iterations = trace.iterations
    loglik = trace.loglik

    sns.lineplot(x=iterations, y=loglik, marker='o', ax=ax, color='tab:blue')

    if diagnostics.decrease_at:
        mask = np.isin(iterations, diagnostics.decrease_at)
        ax.scatter(iterations[mask], loglik[mask], c='red', s=60, zorder=3,
                   label='Decrease')
        ax.legend()

    ax.set_xlabel('Iteration')
    ax.set_ylabel(trace.loglik_col)
    ax.set_title('Log-likelihood by Iteration')
    ax.grid(True, alpha=0.3)

    return fig


def plot_parameter_paths(trace: 'ConvergenceTrace', figsize: Optional[Tuple[int, int]] = None,
                         ax: Optional[plt.Axes] = None) -> plt.Figure:
    """Variance components and residual against iteration."""
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize or (8, 5))
    else:
        fig = ax.get_figure()

    long = trace.parameters.assign(iteration=trace.iterations).melt(
        id_vars='iteration', var_name='parameter', value_name='value')
    sns.lineplot(data=long, x='iteration', y='value', hue='parameter', marker='o', ax=ax)

    ax.set_xlabel('Iteration')
    ax.set_ylabel('Variance')
    ax.set_title('Parameter Paths')
    ax.grid(True, alpha=0.3)

    return fig


def save_figure(fig: plt.Figure, path: Union[str, Path], dpi: int = 300) -> Path:
    """Save a figure, creating the parent directory if needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    return path

"""
Control parameters for convergence-log diagnostics.
"""

class TraceControl:
    """
    Control parameters for convergence-log checks and surface reconstruction.
    
    Parameters
    ----------
    decrease_tol : float, default=0.0
        Log-likelihood drops no larger than this are not counted as decreases
    stagnation_tol : float, default=1e-3
        Improvements smaller than this count towards a stagnation run
    stagnation_run : int, default=3
        Minimum run of small improvements flagged as stagnation
    min_sign_changes : int, default=1
        Sign changes in a parameter's deltas needed to flag oscillation
    grid_resolution : int, default=50
        Number of grid points per axis for surface interpolation
    interp_method : str, default='cubic'
        Scattered-data interpolation method ('cubic', 'linear' or 'nearest')
    maxima_window : int, default=3
        Window size (grid cells) for local maximum detection
    min_prominence : float, default=0.0
        Minimum height of a local maximum above its window minimum
    monitoring : bool, default=False
        Whether to print progress
    """
    
    def __init__(
        self,
        decrease_tol: float = 0.0,
        stagnation_tol: float = 1e-3,
        stagnation_run: int = 3,
        min_sign_changes: int = 1,
        grid_resolution: int = 50,
        interp_method: str = 'cubic',
        maxima_window: int = 3,
        min_prominence: float = 0.0,
        monitoring: bool = False
    ):
        if interp_method not in ('cubic', 'linear', 'nearest'):
            raise ValueError("interp_method must be 'cubic', 'linear' or 'nearest'")
        if grid_resolution < 2:
            raise ValueError("grid_resolution must be >= 2")
        self.decrease_tol = decrease_tol
        self.stagnation_tol = stagnation_tol
        self.stagnation_run = stagnation_run
        self.min_sign_changes = min_sign_changes
        self.grid_resolution = grid_resolution
        self.interp_method = interp_method
        self.maxima_window = maxima_window
        self.min_prominence = min_prominence
        self.monitoring = monitoring
        
    def __repr__(self):
        return (f"TraceControl(stagnation_tol={self.stagnation_tol}, "
                f"stagnation_run={self.stagnation_run}, "
                f"grid_resolution={self.grid_resolution}, "
                f"interp_method='{self.interp_method}', monitoring={self.monitoring})")

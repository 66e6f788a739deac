"""Adaptive uniform spatial grid over a toroidal world, with Numba kernels."""

import math
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Tuple
from numba import njit, prange

from .topology import distance_sq_xy


# ============================================================================
# NUMBA JIT-COMPILED SPATIAL GRID FUNCTIONS
# ============================================================================

@njit(cache=True)
def get_cell_coords(x: float, y: float, cell_size: float, cols: int, rows: int):
    """Convert a 2D position to wrapped (column, row) cell coordinates."""
    cx = int(math.floor(x / cell_size)) % cols
    cy = int(math.floor(y / cell_size)) % rows
    return cx, cy


@njit(parallel=True, cache=True)
def assign_cells(
    positions: np.ndarray,
    cell_indices: np.ndarray,
    cell_size: float,
    cols: int,
    rows: int,
    num_agents: int
):
    """Assign each agent to a cell."""
    for i in prange(num_agents):
        cx, cy = get_cell_coords(positions[i, 0], positions[i, 1], cell_size, cols, rows)
        cell_indices[i] = cx + cy * cols


@njit(cache=True)
def build_cell_lists(
    cell_indices: np.ndarray,
    sorted_indices: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
    num_agents: int,
    num_cells: int
):
    """
    Counting sort of agent indices by cell.

    After this, the bucket of cell ``c`` is
    ``sorted_indices[cell_starts[c]:cell_starts[c] + cell_counts[c]]``, in
    ascending agent order. No memory is allocated.
    """
    for c in range(num_cells):
        cell_counts[c] = 0

    for i in range(num_agents):
        cell_counts[cell_indices[i]] += 1

    running = 0
    for c in range(num_cells):
        cell_starts[c] = running
        running += cell_counts[c]

    # cell_starts doubles as the write cursor, then is restored
    for i in range(num_agents):
        cell = cell_indices[i]
        sorted_indices[cell_starts[cell]] = i
        cell_starts[cell] += 1

    for c in range(num_cells):
        cell_starts[c] -= cell_counts[c]


@njit(cache=True)
def axis_window(c: int, n: int, window: int, ragged: bool):
    """
    Index range into an axis' wrap lookup for a window of ``window`` cells
    either side of cell ``c``.

    Returns ``(start, span)``; ``lookup[start:start + span]`` are the distinct
    wrapped cell coordinates to visit. On a ragged axis the last cell is
    narrower than ``cell_size``, so a window reaching it (or across the seam)
    from another cell gets one extra cell.
    """
    if ragged and c != n - 1 and (c + window >= n - 1 or c - window < 0):
        window += 1
    if 2 * window + 1 >= n:
        return n, n
    return c - window + n, 2 * window + 1


@njit(cache=True)
def query_kernel(
    qx: float,
    qy: float,
    exclude: int,
    radius: float,
    positions: np.ndarray,
    sorted_indices: np.ndarray,
    cell_starts: np.ndarray,
    cell_counts: np.ndarray,
    wrap_cols: np.ndarray,
    wrap_rows: np.ndarray,
    ragged_x: bool,
    ragged_y: bool,
    cell_size: float,
    cols: int,
    rows: int,
    width: float,
    height: float,
    out_indices: np.ndarray,
    out_dist_sq: np.ndarray
) -> int:
    """Collect agents within ``radius`` of ``(qx, qy)``. Returns the number written."""
    radius_sq = radius * radius
    window = max(1, int(math.ceil(radius / cell_size)))
    cx, cy = get_cell_coords(qx, qy, cell_size, cols, rows)
    x_start, x_span = axis_window(cx, cols, window, ragged_x)
    y_start, y_span = axis_window(cy, rows, window, ragged_y)

    found = 0
    for ky in range(y_start, y_start + y_span):
        row_base = wrap_rows[ky] * cols
        for kx in range(x_start, x_start + x_span):
            cell = row_base + wrap_cols[kx]
            count = cell_counts[cell]
            if count == 0:
                continue
            start = cell_starts[cell]
            for k in range(count):
                j = sorted_indices[start + k]
                if j == exclude:
                    continue
                dist_sq = distance_sq_xy(qx, qy, positions[j, 0], positions[j, 1], width, height)
                if dist_sq <= radius_sq:
                    out_indices[found] = j
                    out_dist_sq[found] = dist_sq
                    found += 1
    return found


@njit(cache=True)
def brute_force_query_kernel(
    qx: float,
    qy: float,
    exclude: int,
    radius: float,
    positions: np.ndarray,
    width: float,
    height: float,
    num_agents: int,
    out_indices: np.ndarray,
    out_dist_sq: np.ndarray
) -> int:
    """Exhaustive pairwise search; the reference the grid must agree with."""
    radius_sq = radius * radius
    found = 0
    for j in range(num_agents):
        if j == exclude:
            continue
        dist_sq = distance_sq_xy(qx, qy, positions[j, 0], positions[j, 1], width, height)
        if dist_sq <= radius_sq:
            out_indices[found] = j
            out_dist_sq[found] = dist_sq
            found += 1
    return found


def build_wrap_lookup(n: int) -> np.ndarray:
    """``lookup[k] == (k - n) mod n`` for ``k`` in ``[0, 3n)``; no modulo in the query loop."""
    return (np.arange(3 * n, dtype=np.int64) - n) % n


# ============================================================================
# SPATIAL GRID CLASS
# ============================================================================

@dataclass(frozen=True)
class GridStats:
    """Read-only grid diagnostics for the debug overlay."""
    occupied_cell_count: int
    max_bucket_population: int
    cell_size: float
    dimensions: Tuple[int, int]
    total_cells: int
    average_occupied_population: float

    @property
    def occupancy_percentage(self) -> float:
        if self.total_cells == 0:
            return 0.0
        return self.occupied_cell_count / self.total_cells * 100.0


class SpatialGrid:
    """
    Uniform square-cell lattice over a ``width x height`` torus.

    Buckets are stored CSR-style: agent indices sorted by cell in
    ``sorted_indices`` with per-cell ``cell_starts`` / ``cell_counts``. The
    arrays are preallocated and reused across ticks; they are only
    reallocated when the agent count grows or the dimensions change.
    """

    def __init__(
        self,
        width: float,
        height: float,
        cell_size: float,
        min_cell_size: float = 0.0,
        target_occupancy: float = 8.0,
        occupancy_tolerance: float = 0.5,
        verbose: bool = False,
    ):
        self.width = float(width)
        self.height = float(height)
        self.min_cell_size = float(min_cell_size)
        self.target_occupancy = float(target_occupancy)
        self.occupancy_tolerance = float(occupancy_tolerance)
        self.verbose = verbose

        self.num_agents = 0
        self._cell_indices = np.zeros(0, dtype=np.int64)
        self._sorted_indices = np.zeros(0, dtype=np.int64)
        self._positions = np.zeros((0, 2), dtype=np.float64)
        self._query_indices = np.zeros(0, dtype=np.int64)
        self._query_dist_sq = np.zeros(0, dtype=np.float64)

        self._set_cell_size(cell_size)

    # ------------------------------------------------------------------
    # Sizing
    # ------------------------------------------------------------------

    def _clamp_cell_size(self, cell_size: float) -> float:
        extent = max(self.width, self.height)
        # Degenerate sizes collapse to a single cell rather than failing
        if not cell_size > 0 or not math.isfinite(cell_size):
            cell_size = extent
        return float(min(max(cell_size, self.min_cell_size), extent))

    def _dimensions_for(self, cell_size: float) -> Tuple[int, int]:
        cols = max(1, int(math.ceil(self.width / cell_size)))
        rows = max(1, int(math.ceil(self.height / cell_size)))
        return cols, rows

    def _set_cell_size(self, cell_size: float):
        self.cell_size = self._clamp_cell_size(cell_size)
        self.cols, self.rows = self._dimensions_for(self.cell_size)
        self.num_cells = self.cols * self.rows
        self.ragged_x = self.cols * self.cell_size - self.width > 1e-9 * self.width
        self.ragged_y = self.rows * self.cell_size - self.height > 1e-9 * self.height

        self.wrap_cols = build_wrap_lookup(self.cols)
        self.wrap_rows = build_wrap_lookup(self.rows)
        self._cell_starts = np.zeros(self.num_cells, dtype=np.int64)
        self._cell_counts = np.zeros(self.num_cells, dtype=np.int64)
        # Old buckets are meaningless under new dimensions
        self.num_agents = 0

    @property
    def dimensions(self) -> Tuple[int, int]:
        return self.cols, self.rows

    @property
    def average_occupancy(self) -> float:
        return self.num_agents / self.num_cells

    def ideal_cell_size(self, agent_count: int) -> float:
        """Cell size that puts ``target_occupancy`` agents in each cell on average."""
        return math.sqrt(self.width * self.height * self.target_occupancy / agent_count)

    def occupancy_band(self) -> Tuple[float, float]:
        return (
            self.target_occupancy * (1.0 - self.occupancy_tolerance),
            self.target_occupancy * (1.0 + self.occupancy_tolerance),
        )

    def best_cell_size(self, agent_count: int) -> float:
        """
        Cell size whose rounded-up dimensions put average occupancy closest to target.

        The ideal size alone can land far off target once ``ceil`` rounds the
        dimensions (a world 1.1 ideal cells wide becomes 2 columns), so the
        sizes that exactly tile each axis with the neighbouring whole counts
        are tried as well.
        """
        ideal = self.ideal_cell_size(agent_count)
        candidates = [ideal]
        for extent in (self.width, self.height):
            cells = extent / ideal
            for count in (math.floor(cells), math.ceil(cells)):
                if count >= 1:
                    candidates.append(extent / count)

        best_size = None
        best_error = math.inf
        for candidate in candidates:
            cell_size = self._clamp_cell_size(candidate)
            cols, rows = self._dimensions_for(cell_size)
            error = abs(math.log(agent_count / (cols * rows) / self.target_occupancy))
            if error < best_error:
                best_size = cell_size
                best_error = error
        return best_size

    def configure(
        self,
        width: float = None,
        height: float = None,
        min_cell_size: float = None,
        target_occupancy: float = None,
        occupancy_tolerance: float = None,
        cell_size: float = None,
    ):
        """
        Change world bounds, tuning constants or the cell size.

        Without ``cell_size`` the current size is kept, re-floored at
        ``min_cell_size``.
        """
        if width is not None:
            self.width = float(width)
        if height is not None:
            self.height = float(height)
        if min_cell_size is not None:
            self.min_cell_size = float(min_cell_size)
        if target_occupancy is not None:
            self.target_occupancy = float(target_occupancy)
        if occupancy_tolerance is not None:
            self.occupancy_tolerance = float(occupancy_tolerance)
        self._set_cell_size(cell_size if cell_size is not None else self.cell_size)

    def retune(self, agent_count: int) -> bool:
        """
        Re-size cells so average occupancy falls inside the target band.

        The cell size never drops below ``min_cell_size`` (the largest
        perception radius times the cell size factor). Returns True if the
        cell size changed; buckets must then be rebuilt.
        """
        old_size = self.cell_size
        old_dims = self.dimensions
        cell_size = self._clamp_cell_size(old_size)

        if agent_count > 0:
            occupancy = agent_count / self.num_cells
            low, high = self.occupancy_band()
            if occupancy < low or occupancy > high:
                cell_size = self.best_cell_size(agent_count)

        if cell_size == old_size:
            return False

        self._set_cell_size(cell_size)
        if self.verbose:
            print(
                f"[Grid] Re-tuned cell size {old_size:.2f} -> {self.cell_size:.2f} "
                f"({old_dims[0]}x{old_dims[1]} -> {self.cols}x{self.rows}, "
                f"occupancy {agent_count / self.num_cells:.2f})"
            )
        return True

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    def _ensure_capacity(self, num_agents: int):
        if len(self._cell_indices) < num_agents:
            capacity = max(num_agents, 2 * len(self._cell_indices))
            self._cell_indices = np.zeros(capacity, dtype=np.int64)
            self._sorted_indices = np.zeros(capacity, dtype=np.int64)
            self._query_indices = np.zeros(capacity, dtype=np.int64)
            self._query_dist_sq = np.zeros(capacity, dtype=np.float64)

    def rebuild(self, positions: np.ndarray):
        """Replace every bucket from ``positions`` (shape ``(n, 2)``, already wrapped)."""
        num_agents = len(positions)
        self._ensure_capacity(num_agents)
        if num_agents:
            assign_cells(positions, self._cell_indices, self.cell_size, self.cols, self.rows, num_agents)
        build_cell_lists(
            self._cell_indices, self._sorted_indices,
            self._cell_starts, self._cell_counts,
            num_agents, self.num_cells
        )
        self._positions = positions
        self.num_agents = num_agents

    @property
    def arrays(self):
        """Kernel-ready arrays, in the argument order the force kernel expects."""
        return (
            self._sorted_indices,
            self._cell_starts,
            self._cell_counts,
            self.wrap_cols,
            self.wrap_rows,
        )

    def cell_of(self, x: float, y: float) -> Tuple[int, int]:
        return get_cell_coords(float(x), float(y), self.cell_size, self.cols, self.rows)

    def bucket(self, cell: int) -> np.ndarray:
        """Agent indices in cell ``cell`` (flat index ``col + row * cols``)."""
        if self.num_agents == 0:
            return self._sorted_indices[:0].copy()
        start = self._cell_starts[cell]
        return self._sorted_indices[start:start + self._cell_counts[cell]].copy()

    def buckets(self) -> Dict[int, List[int]]:
        """Non-empty buckets keyed by flat cell index."""
        if self.num_agents == 0:
            return {}
        occupied = np.flatnonzero(self._cell_counts[:self.num_cells])
        return {int(c): self.bucket(c).tolist() for c in occupied}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_point(self, x: float, y: float, radius: float, exclude: int = -1, with_distances: bool = False):
        """Indices of agents within ``radius`` of ``(x, y)`` (toroidal distance)."""
        if self.num_agents == 0 or not radius > 0:
            empty = np.zeros(0, dtype=np.int64)
            return (empty, np.zeros(0)) if with_distances else empty

        found = query_kernel(
            float(x), float(y), int(exclude), float(radius),
            self._positions, self._sorted_indices, self._cell_starts, self._cell_counts,
            self.wrap_cols, self.wrap_rows, self.ragged_x, self.ragged_y,
            self.cell_size, self.cols, self.rows, self.width, self.height,
            self._query_indices, self._query_dist_sq
        )
        indices = self._query_indices[:found].copy()
        if with_distances:
            return indices, self._query_dist_sq[:found].copy()
        return indices

    def query(self, index: int, radius: float, with_distances: bool = False):
        """Neighbors of agent ``index`` within ``radius``, excluding the agent itself."""
        if index < 0 or index >= self.num_agents:
            raise IndexError(f"Agent index {index} out of range for {self.num_agents} agents")
        x, y = self._positions[index]
        return self.query_point(x, y, radius, exclude=index, with_distances=with_distances)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> GridStats:
        if self.num_agents:
            counts = self._cell_counts[:self.num_cells]
            occupied = int(np.count_nonzero(counts))
            largest = int(counts.max())
        else:
            occupied = 0
            largest = 0
        return GridStats(
            occupied_cell_count=occupied,
            max_bucket_population=largest,
            cell_size=self.cell_size,
            dimensions=self.dimensions,
            total_cells=self.num_cells,
            average_occupied_population=self.num_agents / occupied if occupied else 0.0,
        )


def brute_force_neighbors(positions: np.ndarray, index: int, radius: float, width: float, height: float) -> np.ndarray:
    """Exhaustive neighbor search for agent ``index``."""
    n = len(positions)
    out_indices = np.zeros(n, dtype=np.int64)
    out_dist_sq = np.zeros(n, dtype=np.float64)
    found = brute_force_query_kernel(
        float(positions[index, 0]), float(positions[index, 1]), int(index), float(radius),
        positions, float(width), float(height), n, out_indices, out_dist_sq
    )
    return out_indices[:found]

"""Separation / alignment / cohesion force pipeline."""

import math
import numpy as np
from numba import njit, prange

from .grid import SpatialGrid, axis_window, get_cell_coords
from .params import SimulationParams
from .topology import delta_coord


# ============================================================================
# NUMBA JIT-COMPILED FLOCKING FUNCTIONS
# ============================================================================

@njit(cache=True)
def steer(desired_x: float, desired_y: float, vel_x: float, vel_y: float, max_speed: float, max_force: float):
    """Reynolds steering: desired direction at max speed, minus velocity, limited to max force."""
    mag = math.sqrt(desired_x * desired_x + desired_y * desired_y)
    if mag <= 0.0:
        return 0.0, 0.0

    steer_x = desired_x / mag * max_speed - vel_x
    steer_y = desired_y / mag * max_speed - vel_y

    steer_mag = math.sqrt(steer_x * steer_x + steer_y * steer_y)
    if steer_mag > max_force:
        steer_x = steer_x / steer_mag * max_force
        steer_y = steer_y / steer_mag * max_force
    return steer_x, steer_y


@njit(cache=True)
def combine_rules(
    sep_x: float, sep_y: float, sep_count: int,
    align_x: float, align_y: float, align_count: int,
    coh_x: float, coh_y: float, coh_count: int,
    vel_x: float, vel_y: float,
    separation_weight: float,
    alignment_weight: float,
    cohesion_weight: float,
    max_speed: float,
    max_force: float
):
    """Average each rule's sums, steer, weight and add. Rules without neighbors add nothing."""
    ax = 0.0
    ay = 0.0

    if sep_count > 0:
        sx, sy = steer(sep_x / sep_count, sep_y / sep_count, vel_x, vel_y, max_speed, max_force)
        ax += sx * separation_weight
        ay += sy * separation_weight

    if align_count > 0:
        sx, sy = steer(align_x / align_count, align_y / align_count, vel_x, vel_y, max_speed, max_force)
        ax += sx * alignment_weight
        ay += sy * alignment_weight

    if coh_count > 0:
        # Sums are toroidal offsets, so the average is the centroid relative to the agent
        sx, sy = steer(coh_x / coh_count, coh_y / coh_count, vel_x, vel_y, max_speed, max_force)
        ax += sx * cohesion_weight
        ay += sy * cohesion_weight

    return ax, ay


@njit(parallel=True, fastmath=True, cache=True)
def compute_flocking_spatial(
    positions: np.ndarray,
    velocities: np.ndarray,
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
    separation_radius: float,
    alignment_radius: float,
    cohesion_radius: float,
    separation_weight: float,
    alignment_weight: float,
    cohesion_weight: float,
    max_speed: float,
    max_force: float,
    accelerations: np.ndarray,
    num_agents: int
):
    """
    Numba JIT-compiled flocking with spatial grid acceleration.

    One window traversal at the largest radius per agent; each candidate is
    filtered against the three radii. Reads positions, velocities and the grid,
    writes only ``accelerations[i]``.
    """
    separation_sq = separation_radius * separation_radius
    alignment_sq = alignment_radius * alignment_radius
    cohesion_sq = cohesion_radius * cohesion_radius
    perception_radius = max(separation_radius, max(alignment_radius, cohesion_radius))
    perception_sq = perception_radius * perception_radius
    window = max(1, int(math.ceil(perception_radius / cell_size)))

    for i in prange(num_agents):
        px = positions[i, 0]
        py = positions[i, 1]

        cx, cy = get_cell_coords(px, py, cell_size, cols, rows)
        x_start, x_span = axis_window(cx, cols, window, ragged_x)
        y_start, y_span = axis_window(cy, rows, window, ragged_y)

        sep_x, sep_y = 0.0, 0.0
        align_x, align_y = 0.0, 0.0
        coh_x, coh_y = 0.0, 0.0
        sep_count = 0
        align_count = 0
        coh_count = 0

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
                    if i == j:
                        continue

                    # Offset from i to j, the short way round
                    dx = delta_coord(px, positions[j, 0], width)
                    dy = delta_coord(py, positions[j, 1], height)
                    dist_sq = dx * dx + dy * dy
                    if dist_sq > perception_sq:
                        continue

                    if dist_sq <= separation_sq:
                        if dist_sq > 0.0:
                            # Away from j, weighted by 1 / distance
                            sep_x -= dx / dist_sq
                            sep_y -= dy / dist_sq
                        else:
                            sep_x += 1.0
                        sep_count += 1

                    if dist_sq <= alignment_sq:
                        align_x += velocities[j, 0]
                        align_y += velocities[j, 1]
                        align_count += 1

                    if dist_sq <= cohesion_sq:
                        coh_x += dx
                        coh_y += dy
                        coh_count += 1

        ax, ay = combine_rules(
            sep_x, sep_y, sep_count,
            align_x, align_y, align_count,
            coh_x, coh_y, coh_count,
            velocities[i, 0], velocities[i, 1],
            separation_weight, alignment_weight, cohesion_weight,
            max_speed, max_force
        )
        accelerations[i, 0] = ax
        accelerations[i, 1] = ay


@njit(parallel=True, fastmath=True, cache=True)
def compute_flocking_brute_force(
    positions: np.ndarray,
    velocities: np.ndarray,
    width: float,
    height: float,
    separation_radius: float,
    alignment_radius: float,
    cohesion_radius: float,
    separation_weight: float,
    alignment_weight: float,
    cohesion_weight: float,
    max_speed: float,
    max_force: float,
    accelerations: np.ndarray,
    num_agents: int
):
    """O(n^2) flocking without the grid, for small flocks and as a reference."""
    separation_sq = separation_radius * separation_radius
    alignment_sq = alignment_radius * alignment_radius
    cohesion_sq = cohesion_radius * cohesion_radius

    for i in prange(num_agents):
        px = positions[i, 0]
        py = positions[i, 1]

        sep_x, sep_y = 0.0, 0.0
        align_x, align_y = 0.0, 0.0
        coh_x, coh_y = 0.0, 0.0
        sep_count = 0
        align_count = 0
        coh_count = 0

        for j in range(num_agents):
            if i == j:
                continue

            dx = delta_coord(px, positions[j, 0], width)
            dy = delta_coord(py, positions[j, 1], height)
            dist_sq = dx * dx + dy * dy

            if dist_sq <= separation_sq:
                if dist_sq > 0.0:
                    sep_x -= dx / dist_sq
                    sep_y -= dy / dist_sq
                else:
                    sep_x += 1.0
                sep_count += 1

            if dist_sq <= alignment_sq:
                align_x += velocities[j, 0]
                align_y += velocities[j, 1]
                align_count += 1

            if dist_sq <= cohesion_sq:
                coh_x += dx
                coh_y += dy
                coh_count += 1

        ax, ay = combine_rules(
            sep_x, sep_y, sep_count,
            align_x, align_y, align_count,
            coh_x, coh_y, coh_count,
            velocities[i, 0], velocities[i, 1],
            separation_weight, alignment_weight, cohesion_weight,
            max_speed, max_force
        )
        accelerations[i, 0] = ax
        accelerations[i, 1] = ay


# ============================================================================
# PIPELINE ENTRY POINT
# ============================================================================

def compute_accelerations(
    positions: np.ndarray,
    velocities: np.ndarray,
    params: SimulationParams,
    accelerations: np.ndarray,
    grid: SpatialGrid = None,
):
    """
    Fill ``accelerations`` (shape ``(n, 2)``) with each agent's steering.

    With a grid, it must already be rebuilt from ``positions``. Without one
    (or with ``params.enable_spatial_grid`` off) every pair is examined.
    """
    num_agents = len(positions)
    if num_agents == 0:
        return accelerations

    if grid is not None and params.enable_spatial_grid:
        sorted_indices, cell_starts, cell_counts, wrap_cols, wrap_rows = grid.arrays
        compute_flocking_spatial(
            positions,
            velocities,
            sorted_indices,
            cell_starts,
            cell_counts,
            wrap_cols,
            wrap_rows,
            grid.ragged_x,
            grid.ragged_y,
            grid.cell_size,
            grid.cols,
            grid.rows,
            grid.width,
            grid.height,
            float(params.separation_radius),
            float(params.alignment_radius),
            float(params.cohesion_radius),
            float(params.separation_weight),
            float(params.alignment_weight),
            float(params.cohesion_weight),
            float(params.max_speed),
            float(params.max_force),
            accelerations,
            num_agents
        )
    else:
        compute_flocking_brute_force(
            positions,
            velocities,
            float(params.world_width),
            float(params.world_height),
            float(params.separation_radius),
            float(params.alignment_radius),
            float(params.cohesion_radius),
            float(params.separation_weight),
            float(params.alignment_weight),
            float(params.cohesion_weight),
            float(params.max_speed),
            float(params.max_force),
            accelerations,
            num_agents
        )
    return accelerations

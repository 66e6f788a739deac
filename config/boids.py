"""Configuration for the 2D toroidal boids simulation."""

WORLD = {
    "width": 2000.0,
    "height": 2000.0,
}

BOIDS = {
    "count": 20000,             # Numba kernels + spatial grid keep this interactive
    "max_count": 500000,        # Hard cap, growing past it is rejected
    "max_speed": 120.0,
    "max_force": 240.0,
    "initial_speed_fraction": 0.5,

    # Flocking behavior
    "separation_radius": 12.0,  # Minimum comfortable distance
    "alignment_radius": 25.0,   # How far boids match headings
    "cohesion_radius": 25.0,    # How far boids look for a group center
    "separation_weight": 1.5,   # Avoid crowding
    "alignment_weight": 1.0,    # Match neighbor velocities
    "cohesion_weight": 1.0,     # Move toward group center
}

GRID = {
    "enabled": True,            # False falls back to O(n^2) brute force
    "cell_size_factor": 1.0,    # Initial cell size = largest radius * factor
    "adaptive": True,
    "target_occupancy": 8.0,    # Agents per cell the re-tuner aims for
    "occupancy_tolerance": 0.5, # Re-tune outside target * (1 +/- tolerance)
    "retune_interval": 30,      # Ticks between re-tune checks
}

PHYSICS = {
    "fixed_fps": 60.0,
    "max_ticks_per_frame": 5,   # Catch-up cap (avoids the spiral of death)
    "max_frame_time": 0.25,     # Elapsed time per frame is clamped to this
    "parallel": True,
    "interpolation": True,
}

SIMULATION = {
    "seed": None,
    "verbose": True,
    "status_interval": 1.0,     # Seconds between headless status lines
}

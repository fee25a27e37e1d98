# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They hold the physics defaults, the valid ranges enforced by the settings
layer, and the rendering properties of the viewer. Anything a user can
change at runtime lives in the settings file, not here.
"""

# --- Particle physics defaults ---
PARTICLE_RADIUS = 4
# Distance at which particle edges touch (sum of two radii).
REPULSION_RADIUS = PARTICLE_RADIUS * 2
REPULSION_STRENGTH = 0.5
FRICTION = 0.98 # Velocity multiplier applied every step
MAX_VELOCITY = 5.0
FORCE_SCALE = 0.001 # Scales interaction matrix values to forces
BOUNDARY_DAMPING = 0.8

# Placement keeps particle centres at least this many radii apart.
PLACEMENT_SPACING = 2.5
PLACEMENT_ATTEMPTS_PER_PARTICLE = 100

# Integration
MAX_DELTA_TIME = 1.0 / 30.0
BASE_FPS = 60.0 # Forces are tuned for one step per 1/60 s
# Pairs closer than this (squared) are treated as co-located and skipped.
MIN_DISTANCE_SQ = 1e-4

# --- Configuration ranges (validated at the settings boundary) ---
DEFAULT_PARTICLE_COUNT = 100
MIN_PARTICLES = 10
MAX_PARTICLES = 2000

DEFAULT_TYPE_COUNT = 3
MIN_TYPES = 2
MAX_TYPES = 8

DEFAULT_INTERACTION_RADIUS = 300
MIN_INTERACTION_RADIUS = 20
MAX_INTERACTION_RADIUS = 1000

MIN_PARTICLE_RADIUS = 1
MAX_PARTICLE_RADIUS = 8

DEFAULT_FORCE_FALLOFF = 2.0
MIN_FORCE_FALLOFF = 0.5
MAX_FORCE_FALLOFF = 4.0

# Spatial hash is available, but brute force is cheaper at typical counts.
DEFAULT_USE_BRUTE_FORCE = True

MATRIX_MIN = -5.0
MATRIX_MAX = 5.0

# --- Visualization settings ---
# Set to True to run in borderless fullscreen mode.
FULLSCREEN = False
WINDOW_WIDTH = 1100
WINDOW_HEIGHT = 700
UI_PANEL_WIDTH = 300
FPS = 60

# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 60
# Ratio of the halo size to the particle radius.
PARTICLE_HALO_RATIO = 2
# Alpha value for the particle halo (0-255).
PARTICLE_HALO_ALPHA = 40
UI_BACKGROUND_ALPHA = 100
# Particles added or removed per key press.
PARTICLE_COUNT_STEP = 50

# Maps scheme name to one RGB color per particle type.
COLOR_SCHEMES = {
    'neon': [
        (255, 0, 110), (131, 56, 236), (58, 134, 255), (6, 255, 165),
        (255, 190, 11), (251, 86, 7), (255, 0, 110), (58, 134, 255)
    ],
    'pastel': [
        (255, 173, 173), (255, 214, 165), (202, 255, 191), (160, 196, 255),
        (255, 198, 255), (253, 255, 182), (189, 178, 255), (155, 246, 255)
    ],
    'warm': [
        (255, 77, 77), (255, 153, 51), (255, 204, 0), (255, 102, 102),
        (204, 51, 0), (255, 128, 128), (255, 170, 0), (255, 85, 0)
    ],
    'cool': [
        (0, 180, 216), (0, 119, 182), (144, 224, 239), (72, 202, 228),
        (2, 62, 138), (202, 240, 248), (0, 150, 199), (173, 232, 244)
    ],
    'monochrome': [
        (248, 249, 250), (173, 181, 189), (108, 117, 125), (73, 80, 87),
        (52, 58, 64), (33, 37, 41), (222, 226, 230), (134, 142, 150)
    ],
}
DEFAULT_COLOR_SCHEME = 'neon'

BG_COLORS = {
    'dark': (0, 0, 0),
    'light': (255, 255, 255),
}
DEFAULT_BG_COLOR = 'dark'

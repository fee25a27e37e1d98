# settings.py
"""
User settings: defaults, validation and persistence.

This module is the configuration contract boundary. Everything the engine
trusts (matrix shape, count ranges, radii) is checked or repaired here
before it reaches the Simulation. Settings are persisted as a JSON file
between runs.
"""
import logging
import json
import math
import os
import numpy as np
from typing import Dict, Any, List, Optional
from constants import (
    DEFAULT_PARTICLE_COUNT, MIN_PARTICLES, MAX_PARTICLES,
    DEFAULT_TYPE_COUNT, MIN_TYPES, MAX_TYPES,
    DEFAULT_INTERACTION_RADIUS, MIN_INTERACTION_RADIUS, MAX_INTERACTION_RADIUS,
    PARTICLE_RADIUS, MIN_PARTICLE_RADIUS, MAX_PARTICLE_RADIUS,
    DEFAULT_FORCE_FALLOFF, MIN_FORCE_FALLOFF, MAX_FORCE_FALLOFF,
    DEFAULT_USE_BRUTE_FORCE, MATRIX_MIN, MATRIX_MAX,
    COLOR_SCHEMES, DEFAULT_COLOR_SCHEME, BG_COLORS, DEFAULT_BG_COLOR
)

# --- Data Contracts ---
#
# A settings dictionary has the keys:
#   - "particle_count": int in [MIN_PARTICLES, MAX_PARTICLES]
#   - "type_count": int in [MIN_TYPES, MAX_TYPES]
#   - "interaction_matrix": type_count x type_count list of floats,
#     each in [MATRIX_MIN, MATRIX_MAX]
#   - "interaction_radius": int in [MIN_INTERACTION_RADIUS, MAX_INTERACTION_RADIUS]
#   - "particle_radius": int in [MIN_PARTICLE_RADIUS, MAX_PARTICLE_RADIUS]
#   - "force_falloff": float in [MIN_FORCE_FALLOFF, MAX_FORCE_FALLOFF]
#   - "use_brute_force": bool
#   - "color_scheme": a key of COLOR_SCHEMES
#   - "bg_color": a key of BG_COLORS
#
# validate_settings() always returns a dictionary satisfying this contract.

def _random_entry(rng: np.random.Generator) -> float:
    # Rounded to one decimal so values stay readable in the matrix editor.
    return round(float(rng.uniform(MATRIX_MIN, MATRIX_MAX)), 1)

def generate_random_matrix(size: int, rng: np.random.Generator) -> List[List[float]]:
    """Generates a size x size matrix with values in [MATRIX_MIN, MATRIX_MAX]."""
    return [[_random_entry(rng) for _ in range(size)] for _ in range(size)]

def resize_matrix(matrix: List[List[float]], new_size: int,
                  rng: np.random.Generator) -> List[List[float]]:
    """
    Resizes a matrix when the type count changes.

    The overlapping top-left block is preserved; new cells get random values.
    """
    old_size = len(matrix)
    resized = []
    for i in range(new_size):
        row = []
        for j in range(new_size):
            if i < old_size and j < len(matrix[i]):
                row.append(float(matrix[i][j]))
            else:
                row.append(_random_entry(rng))
        resized.append(row)
    return resized

def get_default_settings(rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """Creates a fresh default settings dictionary with a random matrix."""
    rng = rng if rng is not None else np.random.default_rng()
    return {
        'particle_count': DEFAULT_PARTICLE_COUNT,
        'type_count': DEFAULT_TYPE_COUNT,
        'interaction_matrix': generate_random_matrix(DEFAULT_TYPE_COUNT, rng),
        'interaction_radius': DEFAULT_INTERACTION_RADIUS,
        'particle_radius': PARTICLE_RADIUS,
        'force_falloff': DEFAULT_FORCE_FALLOFF,
        'use_brute_force': DEFAULT_USE_BRUTE_FORCE,
        'color_scheme': DEFAULT_COLOR_SCHEME,
        'bg_color': DEFAULT_BG_COLOR,
    }

def _is_number(value) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        # JSON integers are unbounded; one too large for a float is invalid.
        return not math.isnan(float(value))
    except OverflowError:
        return False

def _clamped_number(settings: Dict[str, Any], key: str, default, low, high, integer: bool):
    value = settings.get(key)
    if not _is_number(value) or math.isinf(value):
        if key in settings:
            logging.warning(f"Invalid value for '{key}': {value!r}. Using default {default}.")
        return default
    if integer:
        value = int(round(value))
    clamped = max(low, min(high, value))
    if clamped != value:
        logging.warning(f"'{key}' value {value} out of range [{low}, {high}]. Clamped to {clamped}.")
    return clamped

def _validate_matrix(raw, type_count: int, rng: np.random.Generator) -> List[List[float]]:
    if not isinstance(raw, list) or len(raw) != type_count:
        logging.warning(
            f"Interaction matrix does not have {type_count} rows. Generating a random matrix."
        )
        return generate_random_matrix(type_count, rng)

    matrix = []
    for i, row in enumerate(raw):
        if not isinstance(row, list) or len(row) != type_count:
            logging.warning(f"Interaction matrix row {i} is malformed. Replacing it with random values.")
            matrix.append([_random_entry(rng) for _ in range(type_count)])
            continue
        clean_row = []
        for value in row:
            if _is_number(value):
                clean_row.append(float(max(MATRIX_MIN, min(MATRIX_MAX, value))))
            else:
                logging.warning(f"Interaction matrix row {i} holds invalid entry {value!r}. Replacing it.")
                clean_row.append(_random_entry(rng))
        matrix.append(clean_row)
    return matrix

def validate_settings(settings: Any, rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """
    Validates and sanitizes a stored settings dictionary.

    Missing or invalid fields fall back to defaults, numbers are clamped into
    their valid ranges, and a matrix that does not match the type count is
    repaired. The result always satisfies the settings contract.
    """
    rng = rng if rng is not None else np.random.default_rng()
    defaults = get_default_settings(rng)

    if not isinstance(settings, dict):
        logging.warning("Stored settings are not a dictionary. Using defaults.")
        return defaults

    type_count = _clamped_number(settings, 'type_count', defaults['type_count'], MIN_TYPES, MAX_TYPES, True)
    use_brute_force = settings.get('use_brute_force')
    if not isinstance(use_brute_force, bool):
        use_brute_force = defaults['use_brute_force']

    color_scheme = settings.get('color_scheme')
    if color_scheme not in COLOR_SCHEMES:
        color_scheme = defaults['color_scheme']
    bg_color = settings.get('bg_color')
    if bg_color not in BG_COLORS:
        bg_color = defaults['bg_color']

    return {
        'particle_count': _clamped_number(
            settings, 'particle_count', defaults['particle_count'], MIN_PARTICLES, MAX_PARTICLES, True
        ),
        'type_count': type_count,
        'interaction_matrix': _validate_matrix(settings.get('interaction_matrix'), type_count, rng),
        'interaction_radius': _clamped_number(
            settings, 'interaction_radius', defaults['interaction_radius'],
            MIN_INTERACTION_RADIUS, MAX_INTERACTION_RADIUS, True
        ),
        'particle_radius': _clamped_number(
            settings, 'particle_radius', defaults['particle_radius'],
            MIN_PARTICLE_RADIUS, MAX_PARTICLE_RADIUS, True
        ),
        'force_falloff': float(_clamped_number(
            settings, 'force_falloff', defaults['force_falloff'],
            MIN_FORCE_FALLOFF, MAX_FORCE_FALLOFF, False
        )),
        'use_brute_force': use_brute_force,
        'color_scheme': color_scheme,
        'bg_color': bg_color,
    }

def check_matrix_shape(matrix, type_count: int) -> None:
    """
    Raises ValueError unless the matrix is type_count x type_count.
    """
    shape = np.shape(matrix)
    if shape != (type_count, type_count):
        msg = (
            f"Configuration error: Interaction matrix shape {shape} "
            f"does not match type_count ({type_count}). The matrix must be square "
            f"and its dimensions must equal the number of particle types."
        )
        logging.critical(msg)
        raise ValueError(msg)

def load_settings(path: str, rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """
    Loads settings from a JSON file, falling back to defaults.

    A missing or unreadable file is not an error: the first run has none.
    """
    if not os.path.exists(path):
        logging.info(f"No saved settings at {path}. Using defaults.")
        return get_default_settings(rng)
    try:
        with open(path, 'r') as f:
            stored = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Failed to load settings from {path}: {e}. Using defaults.")
        return get_default_settings(rng)

    logging.info(f"Settings loaded from {path}.")
    return validate_settings(stored, rng)

def save_settings(path: str, settings: Dict[str, Any]) -> None:
    """Saves settings to a JSON file. Failures are logged, not raised."""
    try:
        settings_dir = os.path.dirname(path)
        if settings_dir:
            os.makedirs(settings_dir, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(settings, f, indent=2)
        logging.debug(f"Settings saved to {path}.")
    except (OSError, TypeError) as e:
        logging.warning(f"Failed to save settings to {path}: {e}")

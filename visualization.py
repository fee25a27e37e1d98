# visualization.py
"""
Handles the visualization of the particle simulation using Pygame.

The Visualizer only reads particle positions and types from the engine and
turns user input into the engine's mutation calls. It owns no physics state.
"""
import logging
import pygame
import numpy as np
from typing import Tuple, Optional, Callable, Dict, Any
from settings import resize_matrix, get_default_settings
from constants import (
    FULLSCREEN, WINDOW_WIDTH, WINDOW_HEIGHT, UI_PANEL_WIDTH, FPS,
    MOTION_BLUR_ALPHA, PARTICLE_HALO_RATIO, PARTICLE_HALO_ALPHA, UI_BACKGROUND_ALPHA,
    PARTICLE_COUNT_STEP, COLOR_SCHEMES, DEFAULT_COLOR_SCHEME, BG_COLORS, DEFAULT_BG_COLOR,
    MATRIX_MIN, MATRIX_MAX, MIN_TYPES, MAX_TYPES, MIN_PARTICLES, MAX_PARTICLES,
    MIN_PARTICLE_RADIUS, MAX_PARTICLE_RADIUS,
    MIN_INTERACTION_RADIUS, MAX_INTERACTION_RADIUS, MIN_FORCE_FALLOFF, MAX_FORCE_FALLOFF
)

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from simulation import Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, settings: dict, vis_params: Optional[dict] = None,
#              on_change: Optional[Callable[[dict], None]] = None):
#     - Inputs:
#       - settings: the validated user settings (see settings.py). The
#         Visualizer writes every user change back into this dictionary.
#       - vis_params: the "visualization" config section.
#       - on_change: called with the settings after every user change.
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - draw(self, simulation: "Simulation") -> bool:
#     - Outputs: False if the user has quit, True otherwise.
#     - Side Effects: Handles events (which may call Simulation mutation
#       methods) and renders the particles and UI.

class Visualizer:
    """
    Renders the particle system state and provides interactive UI elements.
    """
    def __init__(self, settings: Dict[str, Any], vis_params: Optional[dict] = None,
                 on_change: Optional[Callable[[Dict[str, Any]], None]] = None):
        pygame.init()
        pygame.font.init()

        vis_params = vis_params if vis_params is not None else {}
        self.settings = settings
        self.on_change = on_change

        if vis_params.get('fullscreen', FULLSCREEN):
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width = vis_params.get('window_width', WINDOW_WIDTH)
            height = vis_params.get('window_height', WINDOW_HEIGHT)
            self.screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)

        self._create_surfaces(width, height)

        pygame.display.set_caption("Particle Life")
        self.clock = pygame.time.Clock()

        self._apply_palette()

        # Pygame will fall back if 'Segoe UI' is not found.
        self.font_main = pygame.font.SysFont("Segoe UI", 14)
        self.font_main_bold = pygame.font.SysFont("Segoe UI", 14, bold=True)

        self.label_margin = 20 # Space for the colored circle labels
        self.cell_padding = 2
        self.label_circle_radius = 8
        self.hovered_cell: Optional[Tuple[int, int]] = None
        self.scroll_step = 0.1

        # --- UI Color Palette ---
        self.button_color = (80, 80, 80)
        self.button_hover_color = (110, 110, 110)
        self.text_color_title = (255, 255, 255)
        self.text_color_key = (200, 200, 200)
        self.text_color_value = (255, 255, 255)
        self.param_box_color = (60, 60, 60, 160)

        self._layout_panel(settings['type_count'])

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _create_surfaces(self, width: int, height: int):
        """(Re)creates the simulation and panel surfaces for a window size."""
        # The simulation area is the total width minus the UI panel
        self.sim_width = max(1, width - UI_PANEL_WIDTH)
        self.sim_height = max(1, height)
        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        # Blitted over the simulation area each frame to leave fading trails.
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

    def _apply_palette(self):
        """Loads the particle and background colors named in the settings."""
        self.colors = [pygame.Color(rgb) for rgb in
                       COLOR_SCHEMES.get(self.settings.get('color_scheme'), COLOR_SCHEMES[DEFAULT_COLOR_SCHEME])]
        self.background_color = BG_COLORS.get(self.settings.get('bg_color'), BG_COLORS[DEFAULT_BG_COLOR])
        self.sim_surface.fill(self.background_color)
        self.blur_surface.fill((*self.background_color, MOTION_BLUR_ALPHA))
        # Halos are re-rendered in the new colors on the next frame.
        self._halo_radius = None

    def _layout_panel(self, type_count: int):
        """Positions the matrix and buttons for the current number of types."""
        self.matrix_pos = (self.sim_width + 30, 10 + self.label_margin)
        available = UI_PANEL_WIDTH - 30 - self.label_margin
        self.cell_size = min(40, available // type_count - self.cell_padding)

        matrix_pixel_size = type_count * (self.cell_size + self.cell_padding) - self.cell_padding
        button_width = (UI_PANEL_WIDTH - 60) // 2
        top = self.matrix_pos[1] + matrix_pixel_size + 10
        x = self.matrix_pos[0]
        self.buttons = {
            'randomize': pygame.Rect(x, top, button_width, 30),
            'zero': pygame.Rect(x + button_width + 10, top, button_width, 30),
            'add_type': pygame.Rect(x, top + 35, button_width, 30),
            'remove_type': pygame.Rect(x + button_width + 10, top + 35, button_width, 30),
            'colors': pygame.Rect(x, top + 70, button_width, 30),
            'reset': pygame.Rect(x + button_width + 10, top + 70, button_width, 30),
        }
        self.params_top = top + 120

    def tick(self) -> float:
        """Waits for the next frame and returns the elapsed time in seconds."""
        return self.clock.tick(FPS) / 1000.0

    def _notify(self):
        if self.on_change is not None:
            self.on_change(self.settings)

    # --- Input handling ---

    def _get_matrix_cell_from_pos(self, pos: Tuple[int, int], type_count: int) -> Optional[Tuple[int, int]]:
        """
        Converts a screen position to matrix cell coordinates if hovering over the matrix.
        """
        stride = self.cell_size + self.cell_padding
        col = (pos[0] - self.matrix_pos[0]) // stride
        row = (pos[1] - self.matrix_pos[1]) // stride
        if not (0 <= row < type_count and 0 <= col < type_count):
            return None
        cell_rect = pygame.Rect(
            self.matrix_pos[0] + col * stride, self.matrix_pos[1] + row * stride,
            self.cell_size, self.cell_size
        )
        return (row, col) if cell_rect.collidepoint(pos) else None

    def _get_type_label_from_pos(self, pos: Tuple[int, int], type_count: int) -> Optional[int]:
        """Returns the type whose row label circle is under pos, if any."""
        center_x = self.matrix_pos[0] - self.label_margin / 2
        for i in range(type_count):
            center_y = self.matrix_pos[1] + i * (self.cell_size + self.cell_padding) + self.cell_size / 2
            if (pos[0] - center_x) ** 2 + (pos[1] - center_y) ** 2 <= self.label_circle_radius ** 2:
                return i
        return None

    def _change_matrix_entry(self, simulation: "Simulation", row: int, col: int, change: float):
        matrix = simulation.interaction_matrix.copy()
        old_value = float(matrix[row, col])
        new_value = round(float(np.clip(old_value + change, MATRIX_MIN, MATRIX_MAX)), 1)
        matrix[row, col] = new_value
        simulation.set_interaction_matrix(matrix)
        self.settings['interaction_matrix'] = matrix.tolist()
        logging.info(
            f"Interaction matrix updated at ({row}, {col}). "
            f"Old: {old_value:.2f}, New: {new_value:.2f}"
        )
        self._notify()

    def _add_type(self, simulation: "Simulation"):
        type_count = simulation.type_count
        if type_count >= MAX_TYPES:
            logging.info(f"Cannot add a type: already at the maximum of {MAX_TYPES}.")
            return
        matrix = resize_matrix(simulation.interaction_matrix.tolist(), type_count + 1, simulation.rng)
        simulation.add_particle_type(type_count + 1, matrix)
        self._after_type_change(simulation)

    def _remove_type(self, simulation: "Simulation", removed_index: int):
        type_count = simulation.type_count
        if type_count <= MIN_TYPES:
            logging.info(f"Cannot remove a type: already at the minimum of {MIN_TYPES}.")
            return
        matrix = np.delete(np.delete(simulation.interaction_matrix, removed_index, axis=0), removed_index, axis=1)
        simulation.remove_particle_type(removed_index, type_count - 1, matrix)
        self._after_type_change(simulation)

    def _after_type_change(self, simulation: "Simulation"):
        self.settings['type_count'] = simulation.type_count
        self.settings['interaction_matrix'] = simulation.interaction_matrix.tolist()
        self._layout_panel(simulation.type_count)
        # The matrix shrank or moved, so a cell hovered before may no longer exist.
        self.hovered_cell = self._get_matrix_cell_from_pos(pygame.mouse.get_pos(), simulation.type_count)
        self._notify()

    def _change_particle_count(self, simulation: "Simulation", change: int):
        count = int(np.clip(simulation.particle_count + change, MIN_PARTICLES, MAX_PARTICLES))
        if count == simulation.particle_count:
            return
        simulation.initialize(count, simulation.type_count, simulation.interaction_matrix)
        self.settings['particle_count'] = count
        self._notify()

    def _change_particle_radius(self, simulation: "Simulation", change: int):
        radius = int(np.clip(simulation.physics.particle_radius + change, MIN_PARTICLE_RADIUS, MAX_PARTICLE_RADIUS))
        simulation.set_particle_radius(radius)
        self.settings['particle_radius'] = radius
        self._notify()

    def _cycle_setting(self, key: str, choices: list):
        names = list(choices)
        current = self.settings.get(key)
        index = names.index(current) if current in names else -1
        self.settings[key] = names[(index + 1) % len(names)]
        self._apply_palette()
        logging.info(f"'{key}' set to '{self.settings[key]}'.")
        self._notify()

    def _reset(self, simulation: "Simulation"):
        """Restores default settings and restarts the simulation with them."""
        defaults = get_default_settings(simulation.rng)
        # Updated in place so the caller's reference sees the defaults.
        self.settings.clear()
        self.settings.update(defaults)
        simulation.set_interaction_radius(defaults['interaction_radius'])
        simulation.set_particle_radius(defaults['particle_radius'])
        simulation.set_force_falloff(defaults['force_falloff'])
        simulation.set_brute_force(defaults['use_brute_force'])
        simulation.initialize(defaults['particle_count'], defaults['type_count'], defaults['interaction_matrix'])
        self._apply_palette()
        logging.info("Settings reset to defaults by user.")
        self._after_type_change(simulation)

    def _handle_click(self, simulation: "Simulation", mouse_pos: Tuple[int, int]):
        if self.buttons['randomize'].collidepoint(mouse_pos):
            simulation.randomize_interaction_matrix()
        elif self.buttons['zero'].collidepoint(mouse_pos):
            simulation.set_interaction_matrix(np.zeros_like(simulation.interaction_matrix))
            logging.info("Interaction matrix reset to all zeros by user.")
        elif self.buttons['add_type'].collidepoint(mouse_pos):
            self._add_type(simulation)
            return
        elif self.buttons['remove_type'].collidepoint(mouse_pos):
            self._remove_type(simulation, simulation.type_count - 1)
            return
        elif self.buttons['colors'].collidepoint(mouse_pos):
            self._cycle_setting('color_scheme', COLOR_SCHEMES)
            return
        elif self.buttons['reset'].collidepoint(mouse_pos):
            self._reset(simulation)
            return
        else:
            return
        self.settings['interaction_matrix'] = simulation.interaction_matrix.tolist()
        self._notify()

    def _handle_key(self, simulation: "Simulation", key: int):
        physics = simulation.physics
        if key == pygame.K_b:
            simulation.set_brute_force(not physics.use_brute_force)
            self.settings['use_brute_force'] = physics.use_brute_force
        elif key in (pygame.K_UP, pygame.K_DOWN):
            step = 10 if key == pygame.K_UP else -10
            radius = int(np.clip(physics.interaction_radius + step, MIN_INTERACTION_RADIUS, MAX_INTERACTION_RADIUS))
            simulation.set_interaction_radius(radius)
            self.settings['interaction_radius'] = radius
        elif key in (pygame.K_LEFTBRACKET, pygame.K_RIGHTBRACKET):
            step = 0.1 if key == pygame.K_RIGHTBRACKET else -0.1
            falloff = round(float(np.clip(physics.force_falloff + step, MIN_FORCE_FALLOFF, MAX_FORCE_FALLOFF)), 1)
            simulation.set_force_falloff(falloff)
            self.settings['force_falloff'] = falloff
        elif key in (pygame.K_MINUS, pygame.K_EQUALS):
            step = PARTICLE_COUNT_STEP if key == pygame.K_EQUALS else -PARTICLE_COUNT_STEP
            self._change_particle_count(simulation, step)
            return
        elif key in (pygame.K_COMMA, pygame.K_PERIOD):
            self._change_particle_radius(simulation, 1 if key == pygame.K_PERIOD else -1)
            return
        elif key == pygame.K_c:
            self._cycle_setting('color_scheme', COLOR_SCHEMES)
            return
        elif key == pygame.K_v:
            self._cycle_setting('bg_color', BG_COLORS)
            return
        elif key == pygame.K_r:
            self._reset(simulation)
            return
        else:
            return
        self._notify()

    def _handle_resize(self, simulation: "Simulation", width: int, height: int):
        self._create_surfaces(width, height)
        self.blur_surface.fill((*self.background_color, MOTION_BLUR_ALPHA))
        self._layout_panel(simulation.type_count)
        simulation.resize(self.sim_width, self.sim_height)

    # --- Drawing ---

    def _draw_interaction_matrix(self, simulation: "Simulation"):
        """Renders the interaction matrix, its labels, and highlights the hovered cell."""
        matrix = simulation.interaction_matrix
        type_count = matrix.shape[0]
        stride = self.cell_size + self.cell_padding

        for i in range(type_count):
            color = self.colors[i % len(self.colors)]
            # Row labels (left side)
            center = (self.matrix_pos[0] - self.label_margin / 2, self.matrix_pos[1] + i * stride + self.cell_size / 2)
            pygame.draw.circle(self.screen, color, center, self.label_circle_radius)
            # Column labels (top side)
            center = (self.matrix_pos[0] + i * stride + self.cell_size / 2, self.matrix_pos[1] - self.label_margin / 2)
            pygame.draw.circle(self.screen, color, center, self.label_circle_radius)

        for r in range(type_count):
            for c in range(type_count):
                value = matrix[r, c]

                # Green for attraction, Red for repulsion
                color_intensity = int(200 * abs(value) / MATRIX_MAX)
                if value > 0:
                    bg_color = (0, color_intensity, 0)
                elif value < 0:
                    bg_color = (color_intensity, 0, 0)
                else:
                    bg_color = (50, 50, 50)

                cell_rect = pygame.Rect(
                    self.matrix_pos[0] + c * stride, self.matrix_pos[1] + r * stride,
                    self.cell_size, self.cell_size
                )
                pygame.draw.rect(self.screen, bg_color, cell_rect)

                if self.hovered_cell == (r, c):
                    pygame.draw.rect(self.screen, (255, 255, 0), cell_rect, 2) # Yellow border

                text_surf = self.font_main.render(f"{value:.1f}", True, self.text_color_title)
                self.screen.blit(text_surf, text_surf.get_rect(center=cell_rect.center))

    def _draw_buttons(self, mouse_pos: Tuple[int, int]):
        labels = {
            'randomize': "Randomize",
            'zero': "Zero",
            'add_type': "Add type",
            'remove_type': "Remove type",
            'colors': "Colors",
            'reset': "Reset",
        }
        for name, rect in self.buttons.items():
            color = self.button_hover_color if rect.collidepoint(mouse_pos) else self.button_color
            pygame.draw.rect(self.screen, color, rect, border_radius=5)
            text_surf = self.font_main.render(labels[name], True, self.text_color_title)
            self.screen.blit(text_surf, text_surf.get_rect(center=rect.center))

    def _draw_simulation_parameters(self, simulation: "Simulation"):
        """Renders the live parameters as key/value rows in one box."""
        physics = simulation.physics
        rows = [
            ("Particles [- / =]", str(simulation.particle_count)),
            ("Types", str(simulation.type_count)),
            ("Size [, / .]", f"{physics.particle_radius:.0f}"),
            ("Colors [C / V]", f"{self.settings.get('color_scheme')} / {self.settings.get('bg_color')}"),
            ("Mode [B]", "Brute force" if physics.use_brute_force else "Spatial hash"),
            ("Radius [Up/Down]", f"{physics.interaction_radius:.0f}"),
            ("Falloff [ / ]", f"{physics.force_falloff:.1f}"),
            ("FPS", f"{self.clock.get_fps():.0f}"),
        ]
        line_height = self.font_main.get_linesize()
        padding = 8
        x = self.matrix_pos[0]
        width = UI_PANEL_WIDTH - 50
        box_rect = pygame.Rect(x, self.params_top, width, len(rows) * line_height + padding * 2)
        pygame.draw.rect(self.screen, self.param_box_color, box_rect, border_radius=6)

        y = self.params_top + padding
        for key, value in rows:
            key_surf = self.font_main_bold.render(key, True, self.text_color_key)
            value_surf = self.font_main.render(value, True, self.text_color_value)
            self.screen.blit(key_surf, (x + padding, y))
            self.screen.blit(value_surf, value_surf.get_rect(topright=(x + width - padding, y)))
            y += line_height

    def _draw_particles(self, simulation: "Simulation"):
        positions, types, count = simulation.get_particle_data()
        radius = max(1, int(round(simulation.physics.particle_radius)))
        halo_radius = radius * PARTICLE_HALO_RATIO
        halo_surfaces = self._render_halos(halo_radius)

        for i in range(count):
            color_index = types[i] % len(self.colors)
            draw_pos = (int(positions[i, 0]), int(positions[i, 1]))
            self.sim_surface.blit(halo_surfaces[color_index], (draw_pos[0] - halo_radius, draw_pos[1] - halo_radius))
            pygame.draw.circle(self.sim_surface, self.colors[color_index], draw_pos, radius)

    def _render_halos(self, halo_radius: int) -> list:
        """
        Returns one pre-rendered halo surface per color, cached per radius.
        """
        if getattr(self, '_halo_radius', None) != halo_radius:
            diameter = halo_radius * 2
            self._halo_surfaces = []
            for color in self.colors:
                halo_surf = pygame.Surface((diameter, diameter), pygame.SRCALPHA)
                pygame.draw.circle(
                    halo_surf, (color.r, color.g, color.b, PARTICLE_HALO_ALPHA),
                    (halo_radius, halo_radius), halo_radius
                )
                self._halo_surfaces.append(halo_surf)
            self._halo_radius = halo_radius
            logging.debug(f"Pre-rendered {len(self._halo_surfaces)} halo surfaces of radius {halo_radius}.")
        return self._halo_surfaces

    def draw(self, simulation: "Simulation") -> bool:
        """
        Draws all particles and UI, and handles events.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        mouse_pos = pygame.mouse.get_pos()
        self.hovered_cell = self._get_matrix_cell_from_pos(mouse_pos, simulation.type_count)

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    logging.info("ESC key pressed. Shutting down visualizer.")
                    return False
                self._handle_key(simulation, event.key)

            if event.type == pygame.VIDEORESIZE:
                self._handle_resize(simulation, event.w, event.h)

            if event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1:
                    self._handle_click(simulation, mouse_pos)
                elif event.button == 3:
                    removed = self._get_type_label_from_pos(mouse_pos, simulation.type_count)
                    if removed is not None:
                        self._remove_type(simulation, removed)

            if event.type == pygame.MOUSEWHEEL and self.hovered_cell:
                r, c = self.hovered_cell
                # event.y is 1 for scroll up, -1 for scroll down
                self._change_matrix_entry(simulation, r, c, event.y * self.scroll_step)

        # Fade the previous frame, then draw particles on top.
        self.sim_surface.blit(self.blur_surface, (0, 0))
        self._draw_particles(simulation)
        self.screen.blit(self.sim_surface, (0, 0))

        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        self._draw_interaction_matrix(simulation)
        self._draw_buttons(mouse_pos)
        self._draw_simulation_parameters(simulation)

        pygame.display.flip()
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()

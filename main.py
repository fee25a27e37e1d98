# main.py
"""
Main entry point for the Particle Life simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Loads the persisted user settings and builds the engine and viewer.
4. Runs the main loop, one `update(dt)` per rendered frame.
5. Saves settings and shuts down cleanly.
"""
import logging
import sys
from utils import setup_logging, load_config
import numpy as np
import cProfile
import pstats
import io

def main(config_path: str = 'config.json'):
    """
    The main function to run the simulation.
    """
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Particle Life Simulation Starting ---")

    sim_params = config.get('simulation_parameters', {})
    run_params = config.get('run_control', {})
    vis_params = config.get('visualization', {})

    from settings import load_settings, save_settings, check_matrix_shape
    from simulation import Simulation
    from visualization import Visualizer

    settings_file = run_params.get('settings_file', 'settings.json')
    settings = load_settings(settings_file, np.random.default_rng(sim_params.get('seed')))
    check_matrix_shape(settings['interaction_matrix'], settings['type_count'])

    # --- Component Initialization ---
    # 1. The visualizer determines the simulation dimensions.
    visualizer = Visualizer(
        settings,
        vis_params,
        on_change=lambda changed: save_settings(settings_file, changed)
    )

    # 2. The engine is built for the visualizer's simulation area.
    sim = Simulation(visualizer.sim_width, visualizer.sim_height, sim_params)
    sim.set_interaction_radius(settings['interaction_radius'])
    sim.set_particle_radius(settings['particle_radius'])
    sim.set_force_falloff(settings['force_falloff'])
    sim.set_brute_force(settings['use_brute_force'])
    sim.initialize(settings['particle_count'], settings['type_count'], settings['interaction_matrix'])

    profiler = cProfile.Profile() if run_params.get('profile', False) else None

    log_throttle = run_params.get('log_throttle_steps', 300)
    max_steps = run_params.get('max_steps', 0)

    running = True
    step_num = 0

    if profiler:
        profiler.enable()
    while running:
        dt = visualizer.tick()
        sim.update(dt)
        step_num += 1

        if not visualizer.draw(sim):
            running = False

        # Hot loops must throttle logs
        if step_num % log_throttle == 0:
            logging.info(f"Simulation step {step_num}")
            avg_velocity = np.mean(np.linalg.norm(sim.particles.velocities, axis=1))
            logging.debug(f"Step {step_num} | Average Velocity: {avg_velocity:.4f}")

        if max_steps and step_num >= max_steps:
            logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
            running = False
    if profiler:
        profiler.disable()

    visualizer.close()
    save_settings(settings_file, settings)
    logging.info("Simulation loop finished.")

    if profiler:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        # Sort by cumulative time spent in the function
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    logging.info("--- Particle Life Simulation Shutting Down ---")


if __name__ == "__main__":
    main(*sys.argv[1:2])

import numpy as np

from twist_core.building import BraceDamper, BuildingModel, Column, Point2D, StructInfo, Wall, WallChara
from twist_core.complex_modal import solve_complex
from twist_core.earthquakes import el_centro_wave
from twist_core.response import solve_time_history
from twist_core.settings import TimeHistoryOptions


def build_demo_building() -> BuildingModel:
    # ===== 3-story frame, 800 x 600 cm plan, units kN / cm =====
    stories = 3
    center = Point2D(400.0, 300.0)
    columns = [
        Column(layer=layer, pos=Point2D(x, y), kx=40.0, ky=35.0)
        for layer in range(1, stories + 1)
        for x in (0.0, 400.0, 800.0)
        for y in (0.0, 600.0)
    ]
    walls = [
        # shear wall on the west side makes the plan eccentric
        Wall(name="RC150", layer=layer, pos=(Point2D(0.0, 100.0), Point2D(0.0, 500.0)))
        for layer in range(1, stories + 1)
    ]
    return BuildingModel(
        struct_info=StructInfo(
            mass_n=stories,
            z_level=[0.0, 350.0, 650.0, 950.0],
            weight=[2400.0, 2400.0, 2100.0],
            w_moment=[2400.0 * (800.0 ** 2 + 600.0 ** 2) / 12.0] * 2 + [2100.0 * (800.0 ** 2 + 600.0 ** 2) / 12.0],
            w_center=[center] * stories,
        ),
        columns=columns,
        wall_chara_db=[WallChara(name="RC150", k=0.5, is_eigen_effect_k=True, is_kc_unit_chara=True)],
        walls=walls,
        brace_dampers=[
            BraceDamper(layer=1, pos=Point2D(800.0, 300.0), direct="Y", k=20.0, c=4.0, is_eigen_effect_k=True),
        ],
    )


def main():
    building = build_demo_building()
    options = TimeHistoryOptions(default_damping_ratio=0.02)

    # ===== real + complex modes =====
    modal, complex_modes = solve_complex(building, options)
    np.set_printoptions(precision=4, suppress=True)
    print("--- Real modes ---")
    print("f (Hz):   ", modal.frequencies_hz)
    print("T (s):    ", modal.periods)
    print("Meff X:   ", modal.effective_mass_ratio_x, "sum =", modal.effective_mass_ratio_x.sum())
    print("Meff Y:   ", modal.effective_mass_ratio_y, "sum =", modal.effective_mass_ratio_y.sum())

    print("\n--- Complex modes ---")
    for mode in complex_modes.modes:
        print(f"mode {mode.mode}: f = {mode.frequency_hz:.4f} Hz, h = {mode.damping_ratio_percent:.2f} %")

    # ===== El Centro (simplified) in X =====
    wave = el_centro_wave(dt=0.01, duration=15.0, direction="X")
    resp = solve_time_history(building, wave, options)

    print("\n--- Time history (El Centro NS -> X) ---")
    print("steps:", len(resp.records))
    print("max roof |DX| (cm):     ", resp.column_max_abs[resp.header.index("DX_R")])
    print("max roof |AX| (cm/s^2): ", resp.column_max_abs[resp.header.index("AX_R")])


if __name__ == "__main__":
    main()

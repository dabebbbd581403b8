import pytest

from twist_core.building import BuildingModel, Column, Floor, Point2D, StructInfo, Wall, WallChara


def _square(half: float) -> list:
    return [Point2D(-half, -half), Point2D(-half, half), Point2D(half, half), Point2D(half, -half)]


def make_building(stories: int = 1, kx: float = 10.0, ky: float = 12.0,
                  weight: float = 100.0, w_moment: float = 1000.0) -> BuildingModel:
    """
    Two columns per story at (0, +1) and (0, -1) around a mass center at the origin.
    Per story: k_x = 2*kx, k_y = 2*ky, k_theta = 2*kx (only the X springs have a lever arm).
    """
    return BuildingModel(
        struct_info=StructInfo(
            mass_n=stories,
            s_type="R",
            z_level=[300.0 * i for i in range(stories + 1)],
            weight=[weight] * stories,
            w_moment=[w_moment] * stories,
            w_center=[Point2D(0.0, 0.0)] * stories,
        ),
        floors=[Floor(layer=i, pos=_square(100.0)) for i in range(1, stories + 2)],
        columns=[
            Column(layer=layer, pos=Point2D(0.0, y), kx=kx, ky=ky)
            for layer in range(1, stories + 1)
            for y in (1.0, -1.0)
        ],
        wall_chara_db=[WallChara(name="W1", k=0.0, is_eigen_effect_k=True, is_kc_unit_chara=False)],
        walls=[Wall(name="W1", layer=1, pos=(Point2D(0.0, 0.0), Point2D(0.0, 10.0)))],
    )


@pytest.fixture
def building_factory():
    return make_building


@pytest.fixture
def single_story():
    return make_building()


@pytest.fixture
def three_story():
    return make_building(stories=3, kx=30.0, ky=25.0, weight=300.0, w_moment=3.0e5)


@pytest.fixture
def building_document():
    return {
        "format": "twist-dynamics/building-model",
        "version": 1,
        "model": {
            "structInfo": {
                "massN": 2,
                "sType": "R",
                "zLevel": [0, 300, 600],
                "weight": [100, 120],
                "wMoment": [1000, 1200],
                "wCenter": [{"x": 0, "y": 0}, {"x": 0, "y": 0}],
            },
            "floors": [
                {"layer": layer, "pos": [{"x": 0, "y": 0}, {"x": 100, "y": 0}, {"x": 100, "y": 100}]}
                for layer in (3, 1, 2)
            ],
            "columns": [
                {"layer": 2, "pos": {"x": 0, "y": 1}, "kx": 10, "ky": 12},
                {"layer": 1, "pos": {"x": 0, "y": 1}, "kx": 10, "ky": 12},
                {"layer": 1, "pos": {"x": 0, "y": -1}, "kx": 10, "ky": 12},
                {"layer": 2, "pos": {"x": 0, "y": -1}, "kx": 10, "ky": 12},
            ],
            "wallCharaDB": [
                {"name": "W1", "k": 10, "h": 0, "c": 0, "isEigenEffectK": True, "isKCUnitChara": False, "memo": ""}
            ],
            "walls": [
                {"name": "W1", "layer": 1, "pos": [{"x": 0, "y": 0}, {"x": 0, "y": 100}], "isVisible": True}
            ],
            "massDampers": [],
            "braceDampers": [],
            "dxPanels": [],
        },
    }

import math

import numpy as np
import pytest

from twist_core.building import (
    BraceDamper, BuildingModel, Column, DXPanel, MassDamper, Point2D, StructInfo, Wall, WallChara,
)
from twist_core.errors import ValidationError
from twist_core.matrices import MatrixAssembler, add_story_block, assemble_matrices, dof_labels
from twist_core.settings import AnalysisOptions
from twist_core.units import CM_KN, UnitSystem

G = CM_KN.gravity


def one_story(**items) -> BuildingModel:
    return BuildingModel(
        struct_info=StructInfo(mass_n=1, z_level=[0.0, 300.0], weight=[100.0], w_moment=[1000.0],
                               w_center=[Point2D(0.0, 0.0)]),
        **items,
    )


def test_mass_matrix_is_diagonal_weight_over_gravity(three_story):
    """
    M(3i, 3i) = M(3i+1, 3i+1) = W_i / g,  M(3i+2, 3i+2) = Wm_i / g
    and nothing off the diagonal.
    """
    matrices = assemble_matrices(three_story)
    M = matrices.mass

    assert M.shape == (9, 9)
    assert matrices.dof_count == 9
    expected = np.diag([300.0 / G, 300.0 / G, 3.0e5 / G] * 3)
    assert np.allclose(M, expected, rtol=1e-12)


def test_gravity_comes_from_unit_system(single_story):
    matrices = assemble_matrices(single_story, units=UnitSystem(gravity=1.0))
    assert np.allclose(np.diag(matrices.mass), [100.0, 100.0, 1000.0])


def test_dof_labels_are_story_major():
    assert dof_labels(2) == ("DX_1", "DY_1", "RZ_1", "DX_2", "DY_2", "RZ_2")


def test_column_offset_couples_translation_and_torsion():
    """
    Column kx=2, ky=4 at (5, 3) about the origin:
        kxx = 2, kxr = -2*3 = -6, kyy = 4, kyr = 4*5 = 20, krr = 2*9 + 4*25 = 118
    """
    model = one_story(columns=[Column(layer=1, pos=Point2D(5.0, 3.0), kx=2.0, ky=4.0)])
    K = assemble_matrices(model).stiffness

    K_manual = np.array([
        [2.0, 0.0, -6.0],
        [0.0, 4.0, 20.0],
        [-6.0, 20.0, 118.0],
    ])
    assert np.allclose(K, K_manual)
    assert np.allclose(K, K.T)


def test_symmetric_columns_do_not_couple(single_story):
    K = assemble_matrices(single_story).stiffness
    assert np.allclose(K, np.diag([20.0, 24.0, 20.0]))


def test_two_story_shear_coupling(building_factory):
    """
    Story blocks k1 (layer 1) and k2 (layer 2):
        K = [[k1 + k2, -k2],
             [-k2,      k2]]
    """
    model = building_factory(stories=2, kx=10.0, ky=12.0)
    model.columns.append(Column(layer=2, pos=Point2D(0.0, 0.0), kx=5.0, ky=0.0))
    K = assemble_matrices(model).stiffness

    k1 = np.diag([20.0, 24.0, 20.0])
    k2 = np.diag([25.0, 24.0, 20.0])
    assert np.allclose(K[0:3, 0:3], k1 + k2)
    assert np.allclose(K[3:6, 3:6], k2)
    assert np.allclose(K[0:3, 3:6], -k2)
    assert np.allclose(K[3:6, 0:3], -k2)


def test_add_story_block_ground_story_has_no_cross_terms():
    K = np.zeros((6, 6))
    add_story_block(K, 0, np.eye(3))
    assert np.allclose(K[0:3, 0:3], np.eye(3))
    assert np.allclose(K[3:, :], 0.0)


def test_wall_shared_x_acts_in_x_scaled_by_length():
    """
    A wall from (0, 0) to (0, 400) shares x, so it is an X spring at its midpoint (0, 200).
    Unit stiffness 0.5 per length -> k = 200:
        kxx = 200, kxr = -200*200, krr = 200*200^2
    """
    model = one_story(
        wall_chara_db=[WallChara(name="RC", k=0.5, is_eigen_effect_k=True, is_kc_unit_chara=True)],
        walls=[Wall(name="RC", layer=1, pos=(Point2D(0.0, 0.0), Point2D(0.0, 400.0)))],
    )
    K = assemble_matrices(model).stiffness

    assert np.isclose(K[0, 0], 200.0)
    assert np.isclose(K[1, 1], 0.0)
    assert np.isclose(K[0, 2], -40000.0)
    assert np.isclose(K[2, 2], 8.0e6)


def test_wall_shared_y_acts_in_y():
    model = one_story(
        wall_chara_db=[WallChara(name="RC", k=7.0, is_eigen_effect_k=True, is_kc_unit_chara=False)],
        walls=[Wall(name="RC", layer=1, pos=(Point2D(-50.0, 10.0), Point2D(50.0, 10.0)))],
    )
    K = assemble_matrices(model).stiffness

    # midpoint (0, 10): dx = 0 so no coupling with torsion
    assert np.isclose(K[1, 1], 7.0)
    assert np.isclose(K[0, 0], 0.0)
    assert np.isclose(K[1, 2], 0.0)


def test_wall_without_eigen_effect_and_wall_damping_are_ignored():
    model = one_story(
        wall_chara_db=[WallChara(name="RC", k=7.0, c=3.0, is_eigen_effect_k=False)],
        walls=[Wall(name="RC", layer=1, pos=(Point2D(0.0, 0.0), Point2D(0.0, 100.0)))],
    )
    matrices = assemble_matrices(model)
    assert np.allclose(matrices.stiffness, 0.0)
    assert np.allclose(matrices.damping, 0.0)


def test_brace_damper_stiffness_depends_on_eigen_flag():
    def brace(flag: bool) -> BuildingModel:
        return one_story(brace_dampers=[
            BraceDamper(layer=1, pos=Point2D(2.0, 0.0), direct="Y", k=8.0, c=3.0, is_eigen_effect_k=flag)
        ])

    without_k = assemble_matrices(brace(False))
    with_k = assemble_matrices(brace(True))

    assert np.allclose(without_k.stiffness, 0.0)
    assert np.isclose(with_k.stiffness[1, 1], 8.0)
    assert np.isclose(with_k.stiffness[1, 2], 16.0)
    assert np.isclose(with_k.stiffness[2, 2], 32.0)
    for matrices in (without_k, with_k):
        assert np.isclose(matrices.damping[1, 1], 3.0)
        assert np.isclose(matrices.damping[1, 2], 6.0)
        assert np.isclose(matrices.damping[2, 2], 12.0)


def test_dx_panel_acts_at_centroid():
    square = [Point2D(0.0, 0.0), Point2D(2.0, 0.0), Point2D(2.0, 2.0), Point2D(0.0, 2.0)]
    model = one_story(dx_panels=[DXPanel(layer=1, direct="Y", pos=square, k=5.0)])
    K = assemble_matrices(model).stiffness

    assert np.isclose(K[1, 1], 5.0)
    assert np.isclose(K[1, 2], 5.0)
    assert np.isclose(K[2, 2], 5.0)


def test_mass_damper_adds_mass_spring_and_dashpot():
    """
    Tuned mass damper W = 10, f = (1, 2) Hz, h = (0.05, 0.1) at the mass center:
        m = W/g,  k = 4 pi^2 W f^2 / (g*100),  c = 2 h sqrt(k m)
    """
    model = one_story(mass_dampers=[
        MassDamper(name="TMD", layer=1, pos=Point2D(0.0, 0.0), weight=10.0,
                   freq=Point2D(1.0, 2.0), h=Point2D(0.05, 0.1))
    ])
    matrices = assemble_matrices(model)

    m = 10.0 / G
    kx = 4.0 * math.pi ** 2 * 10.0 * 1.0 / (G * 100.0)
    ky = 4.0 * math.pi ** 2 * 10.0 * 4.0 / (G * 100.0)
    assert np.isclose(matrices.mass[0, 0], 110.0 / G)
    assert np.isclose(matrices.mass[1, 1], 110.0 / G)
    assert np.isclose(matrices.mass[2, 2], 1000.0 / G)
    assert np.isclose(matrices.stiffness[0, 0], kx)
    assert np.isclose(matrices.stiffness[1, 1], ky)
    assert np.isclose(matrices.damping[0, 0], 2.0 * 0.05 * math.sqrt(kx * m))
    assert np.isclose(matrices.damping[1, 1], 2.0 * 0.1 * math.sqrt(ky * m))


def test_assembled_matrices_are_read_only(single_story):
    matrices = assemble_matrices(single_story)
    with pytest.raises(ValueError):
        matrices.stiffness[0, 0] = 1.0


@pytest.mark.parametrize("mass_n", [0, -1, 2.0, True])
def test_mass_count_must_be_a_positive_integer(mass_n):
    model = BuildingModel(struct_info=StructInfo(mass_n=mass_n))
    with pytest.raises(ValidationError) as err:
        assemble_matrices(model)
    assert err.value.field == "structInfo.massN"


def test_missing_struct_info_is_rejected():
    with pytest.raises(ValidationError) as err:
        assemble_matrices(BuildingModel())
    assert err.value.field == "structInfo"


def test_story_array_length_must_match_mass_count(single_story):
    single_story.struct_info.weight.append(50.0)
    with pytest.raises(ValidationError, match="structInfo.weight length"):
        assemble_matrices(single_story)


def test_layer_out_of_range_is_rejected(single_story):
    single_story.columns.append(Column(layer=2, pos=Point2D(0.0, 0.0), kx=1.0, ky=1.0))
    with pytest.raises(ValidationError) as err:
        assemble_matrices(single_story)
    assert err.value.field == "columns[2].layer"


def test_unknown_wall_property_is_rejected(single_story):
    single_story.walls.append(Wall(name="NOPE", layer=1, pos=(Point2D(0.0, 0.0), Point2D(0.0, 1.0))))
    with pytest.raises(ValidationError, match='"NOPE" was not found in wallCharaDB'):
        assemble_matrices(single_story)


def test_diagonal_wall_is_rejected(single_story):
    single_story.walls[0] = Wall(name="W1", layer=1, pos=(Point2D(0.0, 0.0), Point2D(3.0, 4.0)))
    with pytest.raises(ValidationError, match="aligned to X or Y"):
        assemble_matrices(single_story)


def test_zero_length_wall_is_rejected(single_story):
    single_story.walls[0] = Wall(name="W1", layer=1, pos=(Point2D(1.0, 1.0), Point2D(1.0, 1.0)))
    with pytest.raises(ValidationError, match="non-zero length"):
        assemble_matrices(single_story)


def test_negative_damping_ratio_is_rejected(single_story):
    with pytest.raises(ValidationError) as err:
        MatrixAssembler(single_story, AnalysisOptions(default_damping_ratio=-0.01)).assemble()
    assert err.value.field == "defaultDampingRatio"

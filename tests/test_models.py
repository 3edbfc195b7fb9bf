import pytest

from cloth.models import ClothConfig, ConstraintType, GridParams, cape_pins


def test_type_stiffness():
    assert ConstraintType.STRUCTURAL.stiffness == 1.0
    assert ConstraintType.SHEAR.stiffness == 0.8
    assert ConstraintType.BENDING.stiffness == 0.5


def test_default_config_matches_demo():
    config = ClothConfig()

    assert config.gravity == 15.0
    assert config.wind_strength == 3.0
    assert config.stiffness == 0.9
    assert config.damping == 0.98
    assert config.iterations == 8
    assert not config.show_particles
    assert not config.show_constraints


def test_config_is_not_clamped_implicitly():
    config = ClothConfig(gravity=100.0, iterations=0)

    assert config.gravity == 100.0
    assert config.iterations == 0


def test_clamped_copy():
    config = ClothConfig(
        gravity=100.0,
        wind_strength=-1.0,
        stiffness=0.1,
        damping=1.2,
        iterations=25.6,
        show_particles=True,
    )
    clamped = config.clamped()

    assert clamped.gravity == 40.0
    assert clamped.wind_strength == 0.0
    assert clamped.stiffness == 0.3
    assert clamped.damping == 0.995
    assert clamped.iterations == 20
    assert isinstance(clamped.iterations, int)
    assert clamped.show_particles
    assert config.gravity == 100.0


def test_copy_with_changes():
    config = ClothConfig().copy(show_constraints=True, gravity=5.0)

    assert config.show_constraints
    assert config.gravity == 5.0
    assert config.damping == 0.98


def test_grid_params_spacing():
    params = GridParams(width=0.8, height=1.2, segments_x=12, segments_y=18)

    assert params.spacing_x == pytest.approx(0.8 / 12)
    assert params.spacing_y == pytest.approx(1.2 / 18)


def test_cape_pins():
    is_pinned = cape_pins(12)

    assert [c for c in range(13) if is_pinned(c, 0)] == [0, 1, 2, 10, 11, 12]
    assert not any(is_pinned(c, 1) for c in range(13))


def test_copy_carries_every_field():
    config = ClothConfig(
        gravity=3.0,
        wind_strength=1.5,
        stiffness=0.4,
        damping=0.91,
        iterations=2,
        show_particles=True,
        show_constraints=True,
    )
    copied = config.copy()

    assert copied is not config
    assert vars(copied) == vars(config)

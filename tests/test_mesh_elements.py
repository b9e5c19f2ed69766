"""
Unit tests for MeshElement and MeshNode.

Checks the commit rule, pending-energy accumulation, energy conservation
per node and the resistance path selection.
"""

import pytest

from thermalstack import MeshElement, MeshNode


def make_element(temperature=25.0, **kwargs):
    defaults = dict(
        temperature=temperature,
        energy_gen_per_step=0.0,
        capacitance=0.002,
        xy_half_resistance=2.5,
        z_half_resistance=0.25,
        z_layer=0,
    )
    defaults.update(kwargs)
    return MeshElement(**defaults)


class TestMeshElement:
    """Energy accumulation and commit."""

    def test_pending_energy_accumulates(self):
        element = make_element()
        element.set_pending_energy(1e-4)
        element.set_pending_energy(-3e-4)
        element.set_pending_energy(5e-4)
        assert element.pending_energy == pytest.approx(3e-4)

    def test_apply_adds_generation_and_pending(self):
        element = make_element(temperature=30.0, energy_gen_per_step=2e-4, capacitance=0.001)
        element.set_pending_energy(-1e-4)
        element.apply_energy_transfer()

        assert element.temperature == pytest.approx(30.0 + (2e-4 - 1e-4) / 0.001)
        assert element.pending_energy == 0.0

    def test_isolated_element_without_generation_is_unchanged(self):
        element = make_element(temperature=42.0)
        for _ in range(100):
            element.apply_energy_transfer()
        assert element.temperature == 42.0

    def test_empty_element_is_inert(self):
        element = MeshElement.placeholder(z_layer=3)
        assert element.is_empty()
        element.set_pending_energy(1.0)
        element.apply_energy_transfer()
        assert element.temperature == 0.0

    def test_make_empty(self):
        element = make_element(energy_gen_per_step=1.0)
        element.make_empty()
        element.apply_energy_transfer()
        assert element.temperature == 25.0

    def test_neighbor_bookkeeping(self):
        element = make_element()
        assert not element.check_for_existing_node(7)
        element.remember_neighbor(7)
        assert element.check_for_existing_node(7)


class TestMeshNode:
    """Conduction edges between two active elements."""

    def test_lateral_resistance_for_same_layer(self):
        arena = [make_element(xy_half_resistance=2.0), make_element(xy_half_resistance=3.0)]
        node = MeshNode(arena, 0, 1)
        assert node.is_lateral
        assert node.resistance == pytest.approx(5.0)

    def test_vertical_resistance_across_layers(self):
        arena = [make_element(z_layer=0, z_half_resistance=0.25),
                 make_element(z_layer=1, z_half_resistance=0.05)]
        node = MeshNode(arena, 0, 1)
        assert not node.is_lateral
        assert node.resistance == pytest.approx(0.30)

    def test_registers_symmetric_adjacency(self):
        arena = [make_element(), make_element()]
        MeshNode(arena, 0, 1)
        assert arena[0].check_for_existing_node(1)
        assert arena[1].check_for_existing_node(0)

    def test_duplicate_edge_rejected(self):
        arena = [make_element(), make_element()]
        MeshNode(arena, 0, 1)
        with pytest.raises(ValueError):
            MeshNode(arena, 1, 0)

    def test_empty_endpoint_rejected(self):
        arena = [make_element(), MeshElement.placeholder()]
        with pytest.raises(ValueError):
            MeshNode(arena, 0, 1)

    def test_self_link_rejected(self):
        arena = [make_element()]
        with pytest.raises(ValueError):
            MeshNode(arena, 0, 0)

    def test_energy_flows_hot_to_cold_and_is_conserved(self):
        arena = [make_element(temperature=80.0), make_element(temperature=20.0)]
        node = MeshNode(arena, 0, 1)
        dt = 1e-3

        energy = node.calc_energy_transfer(dt)

        assert energy == pytest.approx((80.0 - 20.0) / node.resistance * dt)
        assert arena[0].pending_energy == pytest.approx(-energy)
        assert arena[1].pending_energy == pytest.approx(energy)
        assert arena[0].pending_energy + arena[1].pending_energy == pytest.approx(0.0)

    def test_equal_temperatures_transfer_nothing(self):
        arena = [make_element(temperature=55.0), make_element(temperature=55.0)]
        node = MeshNode(arena, 0, 1)
        assert node.calc_energy_transfer(1e-3) == 0.0
        assert arena[0].pending_energy == 0.0
        assert arena[1].pending_energy == 0.0

    def test_transfer_does_not_touch_temperatures(self):
        arena = [make_element(temperature=80.0), make_element(temperature=20.0)]
        node = MeshNode(arena, 0, 1)
        node.calc_energy_transfer(1e-3)
        assert arena[0].temperature == 80.0
        assert arena[1].temperature == 20.0

    def test_pair_is_sorted(self):
        arena = [make_element(), make_element()]
        assert MeshNode(arena, 1, 0).pair == (0, 1)

import pytest

from pyecoroof.numerics.double_buffer import DoubleBufferedValue
from pyecoroof.roof.state import EcoRoofState, SurfaceThermalState
from pyecoroof.materials import MaterialParameters
from pyecoroof.constants import KELVIN


def test_read_write_isolation_and_swap():
    t = DoubleBufferedValue(290.0)
    assert t.read == 290.0
    t.write = 300.0
    # not visible until swap
    assert t.read == 290.0
    t.swap()
    assert t.read == 300.0
    # copy-on-swap: the next write buffer starts at the committed value
    assert t.write == 300.0


def test_unwritten_value_persists_across_swaps():
    t = DoubleBufferedValue(1.0)
    t.write = 2.0
    t.swap()
    t.swap()
    t.swap()
    assert t.read == 2.0


def test_reset_sets_both_buffers():
    t = DoubleBufferedValue(5.0)
    t.write = 9.0
    t.reset(7.0)
    assert t.read == 7.0 and t.write == 7.0
    assert float(t) == 7.0
    assert "read=7.0" in repr(t)


def test_swap_all_semantics():
    th = SurfaceThermalState.uniform(280.0)
    th.leaf.write = 281.0
    th.soil.write = 282.0
    assert th.leaf.read == 280.0
    th.swap_all()
    assert th.leaf.read == 281.0
    assert th.soil.read == 282.0
    assert th.bare_soil.read == 280.0


def test_environment_reset_restores_state():
    st = EcoRoofState.initial(MaterialParameters(), outdoor_temp_c=5.0)
    assert st.thermal.soil.read == pytest.approx(5.0 + KELVIN)
    st.moisture.top = 0.3
    st.moisture.root = 0.05
    st.live.albedo = 0.1
    st.fluxes.cumulative_runoff = 0.02
    st.canopy.refreshed = True
    st.thermal.leaf.write = 320.0
    st.swap_all()

    st.reset_environment(20.0)
    m0 = st.material.moisture_initial
    assert st.moisture.top == m0 and st.moisture.root == m0
    assert st.live.albedo == pytest.approx(1.0 - st.material.soil_absorptance)
    assert st.fluxes.cumulative_runoff == 0.0
    assert not st.canopy.refreshed
    for b in st.thermal.buffers():
        assert b.read == pytest.approx(20.0 + KELVIN)
        assert b.write == pytest.approx(20.0 + KELVIN)

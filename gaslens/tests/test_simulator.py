"""Tests for gaslens.state.simulator — heuristic call simulation."""

from __future__ import annotations

import pytest

from gaslens.core.errors import ErrorCode, SimulationError
from gaslens.state.collector import StateCollector
from gaslens.state.simulator import ContractSimulator

RECIPIENT = "0x" + "12" * 20


@pytest.fixture
def collector(hub, settings, sample_layout, sample_abi) -> StateCollector:
    c = StateCollector(hub, settings)
    c.load_layout(sample_layout, "Token", sample_abi)
    c.create_initial_snapshot()
    return c


@pytest.fixture
def sim(collector) -> ContractSimulator:
    return ContractSimulator(collector)


class TestFunctions:

    def test_lists_only_functions(self, sim):
        names = [f.name for f in sim.functions()]
        assert names == ["mint", "burn", "transfer", "setBalance", "pause", "totalSupplyOf"]

    def test_signature_lookup(self, sim):
        assert sim.find_function("transfer(address,uint256)").name == "transfer"

    def test_invalid_abi(self, collector):
        with pytest.raises(SimulationError) as exc:
            ContractSimulator(collector, {"not": "a list"})
        assert exc.value.code == ErrorCode.ABI_INVALID


class TestSimulate:

    def test_mint_increases_supply(self, sim, collector):
        result = sim.simulate("mint", [1000])
        assert result.ok
        (change,) = result.state_changes
        assert (change.variable_name, change.operation) == ("totalSupply", "MINT")
        assert (change.old_value, change.new_value) == ("0x0", "0x3e8")
        assert result.new_state["totalSupply"].display_value == "1000"

        latest = collector.snapshots()[-1]
        assert latest.context_info["type"] == "simulation"
        assert latest.context_info["function"] == "mint"
        assert result.new_state["totalSupply"].last_changed == latest.id
        assert collector.current_state()["totalSupply"].value == "0x3e8"

    def test_burn_after_mint(self, sim):
        sim.simulate("mint", [1000])
        result = sim.simulate("burn", ["400"])
        assert result.state_changes[0].new_value == hex(600)
        assert result.state_changes[0].operation == "BURN"

    def test_burn_underflow_is_an_error(self, sim, collector):
        before = len(collector.snapshots())
        result = sim.simulate("burn", [1])
        assert not result.ok
        assert result.state_changes == []
        assert len(collector.snapshots()) == before

    def test_setter_then_transfer(self, sim):
        sim.simulate("setBalance", [500])
        result = sim.simulate("transfer", [RECIPIENT, 200])
        (change,) = result.state_changes
        assert change.operation == "TRANSFER_FROM"
        assert change.variable_name == "balance"
        assert change.new_value == hex(300)

    def test_generic_function_bumps_first_variable(self, sim):
        result = sim.simulate("pause", [])
        (change,) = result.state_changes
        assert change.operation == "PAUSE"
        assert change.variable_name == "totalSupply"
        assert change.new_value == "0x1"

    def test_view_function_changes_nothing(self, sim, collector):
        before = len(collector.snapshots())
        result = sim.simulate("totalSupplyOf", [])
        assert result.ok
        assert result.state_changes == []
        assert len(collector.snapshots()) == before

    def test_unknown_function(self, sim):
        result = sim.simulate("rugpull", [])
        assert result.errors[0].code == ErrorCode.FUNCTION_NOT_FOUND

    def test_invalid_input(self, sim):
        result = sim.simulate("mint", ["lots"])
        assert result.errors[0].code == ErrorCode.INVALID_INPUT
        assert result.state_changes == []

    def test_explicit_state_is_not_mutated(self, sim, collector):
        state = collector.current_state()
        sim.simulate("mint", [5], current_state=state)
        assert state["totalSupply"].value == "0x0"

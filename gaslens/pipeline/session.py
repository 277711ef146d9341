"""Analysis session — owns the stateful components for one contract view.

Each session has its own event hub, tour and state collector, so repeated or
parallel analyses never share state. A new gas analysis replaces the tour
instance instead of mutating one mid-navigation.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from gaslens.analyzer.gas_usage import GasUsage, GasUsageTracker
from gaslens.analyzer.hotspots import GasHotspotAnalyzer, HotspotReport
from gaslens.analyzer.tour import GasTour
from gaslens.core.config import Settings, get_settings
from gaslens.core.events import EventHub
from gaslens.core.types import StateSnapshot
from gaslens.ingestion.artifacts import CompiledContract
from gaslens.state.collector import StateCollector
from gaslens.state.simulator import ContractSimulator

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Usage:
        session = AnalysisSession()
        session.hub.subscribe(EventType.TOUR_STEP_CHANGED, render_step)
        report = session.analyze_gas(contract, source_code)
        session.load_state(contract)
        session.apply_trace(trace)
    """

    def __init__(self, settings: Settings | None = None, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.settings = settings or get_settings()
        self.hub = EventHub()
        self.analyzer = GasHotspotAnalyzer(self.settings)
        self.tour = GasTour(self.hub)
        self.state = StateCollector(self.hub, self.settings)
        self.gas_usage = GasUsageTracker()
        self.last_report: HotspotReport | None = None
        self._log = logging.LoggerAdapter(logger, {"session_id": self.session_id})

    def analyze_gas(
        self,
        contract: CompiledContract,
        source_code: str,
        trace: Any = None,
        creation: bool = False,
    ) -> HotspotReport:
        """Rank hotspots for *contract* and start a fresh tour over them.

        Runtime (deployed) code is analyzed unless *creation* is set; a trace
        must come from executing the same code.
        """
        bytecode = contract.bytecode if creation else contract.deployed_bytecode
        source_map = contract.source_map if creation else contract.deployed_source_map

        report = self.analyzer.analyze(
            bytecode, source_map, source_code, trace=trace, file_index=contract.file_index,
        )
        self.last_report = report

        self.tour.finish()
        self.tour = GasTour(self.hub)
        if report.hotspots:
            self.tour.start(report.hotspots)

        self._log.info(
            "Analyzed %s (%s code): %d hotspots",
            contract.name, "creation" if creation else "runtime", len(report.hotspots),
        )
        return report

    def record_gas_usage(self, trace: Any) -> GasUsage | None:
        return self.gas_usage.process_trace(trace)

    def load_state(self, contract: CompiledContract) -> StateSnapshot | None:
        """Reset storage history to *contract*'s post-deployment state."""
        self.state.clear()
        self.state.load_layout(contract.storage_layout, contract.name, contract.abi)
        snapshot = self.state.create_initial_snapshot()
        if snapshot is None:
            self._log.info("%s has no storage variables", contract.name)
        return snapshot

    def apply_trace(self, trace: Any, transaction_hash: str | None = None) -> StateSnapshot:
        return self.state.process_trace(trace, transaction_hash)

    def simulator(self) -> ContractSimulator:
        return ContractSimulator(self.state)

    def close(self) -> None:
        self.tour.finish()
        self.hub.clear()

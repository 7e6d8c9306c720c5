"""Sequential accumulation engine.

Walks a list of units one at a time. Each turn composes a prompt from the
state accumulated so far, calls the model with a single bound tool, reads the
tool payload, and folds it into the state:

    START -> compose -> invoke -> extract -> merge -> compose -> ... -> finalize -> END

`compose` returns no prompt once the cursor passes the last unit, which routes
the graph to `finalize`. What is composed, parsed and merged is delegated to
an AccumulationTask, so the same loop serves extraction and rule matching.
"""

from __future__ import annotations

import abc
from pathlib import Path
from typing import Any, Generic, Sequence, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph

from miso_agent.agents.state import EngineState
from miso_agent.agents.tracing import build_callbacks
from miso_agent.agents.turns import EmptyTurn, TurnResult, read_tool_payload
from miso_agent.config import settings
from miso_agent.errors import ModelInvocationError, ToolRegistrationError
from miso_agent.utils.clock import now_text
from miso_agent.utils.logging import get_logger, BOLD, DIM, GREEN, RESET

log = get_logger()

U = TypeVar("U")
A = TypeVar("A")
R = TypeVar("R")

# compose, invoke, extract and merge each take one graph step per unit
_STEPS_PER_UNIT = 4
_STEP_MARGIN = 4


class AccumulationTask(abc.ABC, Generic[U, A, R]):
    """What one engine instance composes, parses, merges and returns."""

    #: Graph name, used in logs and diagrams
    name: str = "Agent"

    @property
    @abc.abstractmethod
    def tool(self) -> BaseTool:
        """The single tool the model is bound to."""

    @abc.abstractmethod
    def initial_state(self, request: Any) -> A:
        ...

    @abc.abstractmethod
    def compose(
        self, cursor: int, units: Sequence[U], request: Any, accumulated: A, now: str,
    ) -> list[BaseMessage] | None:
        """Messages for the unit at `cursor`, or None when there is none left."""

    @abc.abstractmethod
    def parse(self, payload: dict | None) -> TurnResult:
        """Turn a raw tool payload (None when absent) into a TurnResult."""

    @abc.abstractmethod
    def merge(self, accumulated: A, turn: TurnResult, unit: U) -> A:
        """Fold one turn into the state, returning the new state."""

    @abc.abstractmethod
    def finalize(self, accumulated: A, request: Any) -> R:
        ...

    def describe_unit(self, unit: U) -> str:
        return str(unit)


class SequentialEngine(Generic[U, A, R]):
    """Compiled LangGraph loop driving one AccumulationTask."""

    def __init__(self, model: BaseChatModel, task: AccumulationTask[U, A, R]):
        self.task = task
        try:
            self.model = model.bind_tools([task.tool])
        except Exception as e:
            raise ToolRegistrationError(f"{task.name}: cannot bind tool {task.tool.name}: {e}") from e
        self.graph = self._build_graph()
        if settings.visualize_dir:
            write_mermaid(self.graph, task.name, settings.visualize_dir)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _compose(self, state: EngineState) -> dict:
        cursor = state["cursor"]
        units = state["units"]
        if cursor < len(units):
            log.info(
                f"  {DIM}[{self.task.name}] reading {cursor + 1}/{len(units)}: "
                f"{self.task.describe_unit(units[cursor])}{RESET}"
            )
        prompt = self.task.compose(cursor, units, state["request"], state["accumulated"], state["now"])
        if prompt:
            for m in prompt:
                log.debug(f"  {DIM}{m.type} message: {m.content}{RESET}")
        return {"prompt": prompt}

    def _route_after_compose(self, state: EngineState) -> str:
        if state["prompt"] is None:
            return "finalize"
        return "invoke"

    async def _invoke(self, state: EngineState, config: RunnableConfig) -> dict:
        try:
            reply = await self.model.ainvoke(state["prompt"], config=config)
        except Exception as e:
            raise ModelInvocationError(self.task.name, state["cursor"], e) from e
        return {"response": [reply]}

    def _extract(self, state: EngineState) -> dict:
        payload = read_tool_payload(state["response"], self.task.tool.name)
        return {"turn": self.task.parse(payload)}

    def _merge(self, state: EngineState) -> dict:
        cursor = state["cursor"]
        turn = state["turn"] if state["turn"] is not None else EmptyTurn()
        accumulated = self.task.merge(state["accumulated"], turn, state["units"][cursor])
        return {
            "accumulated": accumulated,
            "cursor": cursor + 1,
            "prompt": None,
            "response": [],
            "turn": None,
        }

    def _finalize(self, state: EngineState) -> dict:
        return {"output": self.task.finalize(state["accumulated"], state["request"])}

    def _build_graph(self):
        g = StateGraph(EngineState)
        g.add_node("compose", self._compose)
        g.add_node("invoke", self._invoke)
        g.add_node("extract", self._extract)
        g.add_node("merge", self._merge)
        g.add_node("finalize", self._finalize)

        g.add_edge(START, "compose")
        g.add_conditional_edges("compose", self._route_after_compose, {
            "invoke": "invoke",
            "finalize": "finalize",
        })
        g.add_edge("invoke", "extract")
        g.add_edge("extract", "merge")
        g.add_edge("merge", "compose")
        g.add_edge("finalize", END)
        return g.compile(name=self.task.name)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def initial(self, units: Sequence[U], request: Any, now: str | None = None) -> EngineState:
        return {
            "request": request,
            "units": list(units),
            "cursor": 0,
            "now": now or now_text(),
            "prompt": None,
            "response": [],
            "turn": None,
            "accumulated": self.task.initial_state(request),
            "output": None,
        }

    async def run(self, units: Sequence[U], request: Any, config: RunnableConfig | None = None) -> R:
        """Process every unit once and return the finalized output.

        Raises ModelInvocationError when a model call fails; no partial
        output is returned in that case.
        """
        state = self.initial(units, request)
        if not state["units"]:
            return self.task.finalize(state["accumulated"], request)

        run_config: dict = dict(config or {})
        run_config["recursion_limit"] = _STEPS_PER_UNIT * len(state["units"]) + _STEP_MARGIN
        callbacks = build_callbacks(self.task.name)
        if callbacks:
            run_config["callbacks"] = list(run_config.get("callbacks") or []) + callbacks

        log.info(f"{BOLD}{self.task.name}{RESET} — {len(state['units'])} items")
        final = await self.graph.ainvoke(state, config=run_config)
        log.info(f"  {GREEN}✓{RESET} {self.task.name} finished {final['cursor']} turns")
        return final["output"]


def write_mermaid(graph, name: str, directory: str) -> Path:
    """Write the compiled graph as a Mermaid flowchart to `<directory>/<name>.mmd`."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{name}.mmd"
    path.write_text(graph.get_graph().draw_mermaid(), encoding="utf-8")
    log.info(f"  {DIM}Graph diagram written to {path}{RESET}")
    return path

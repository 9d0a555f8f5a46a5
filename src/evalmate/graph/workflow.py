"""LangGraph workflow assembly for one task evaluation."""

from functools import partial

from langgraph.graph import END, StateGraph

from evalmate.graph.nodes import finalize, generate, insights, normalize, prompt
from evalmate.graph.state import EvaluationState, WorkflowDeps


def build_graph(deps: WorkflowDeps):
    def _stop_on_error(state: EvaluationState) -> str:
        return "stop" if state.get("error") else "continue"

    graph = StateGraph(EvaluationState)

    graph.add_node("prompt", partial(prompt.run, deps=deps))
    graph.add_node("generate", partial(generate.run, deps=deps))
    graph.add_node("normalize", partial(normalize.run, deps=deps))
    graph.add_node("insights", partial(insights.run, deps=deps))
    graph.add_node("finalize", partial(finalize.run, deps=deps))

    graph.set_entry_point("prompt")
    graph.add_edge("prompt", "generate")
    graph.add_conditional_edges("generate", _stop_on_error, {"stop": END, "continue": "normalize"})
    graph.add_conditional_edges("normalize", _stop_on_error, {"stop": END, "continue": "insights"})
    graph.add_edge("insights", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile()

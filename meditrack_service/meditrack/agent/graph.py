# meditrack/agent/graph.py
from functools import lru_cache

from langgraph.checkpoint.sqlite import SqliteSaver
from langgraph.graph import END, START, StateGraph

from meditrack.agent.nodes import approval_node, build_request_node, finalize_node, safety_check_node
from meditrack.agent.state import WorkflowState
from meditrack.db.db_config import get_sqlite_connection

def build_graph():
    builder = StateGraph(WorkflowState)

    builder.add_node("build_request", build_request_node)
    builder.add_node("safety_check", safety_check_node)
    builder.add_node("approval", approval_node)
    builder.add_node("finalize", finalize_node)

    builder.add_edge(START, "build_request")
    builder.add_edge("build_request", "safety_check")
    builder.add_edge("safety_check", "approval")
    builder.add_edge("approval", "finalize")
    builder.add_edge("finalize", END)

    memory = SqliteSaver(get_sqlite_connection())
    return builder.compile(checkpointer=memory)

@lru_cache(maxsize=1)
def get_prescription_graph():
    return build_graph()

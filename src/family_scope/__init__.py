"""Family Scope - bounded relation-scope resolution over a family graph.

Resolves which people are reachable from a root person through recorded
PARENT, CHILD, SIBLING and SPOUSE relations, under a direction policy,
a depth limit and a node cap.
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name == "graph":
        from family_scope import graph
        return graph
    if name == "delivery":
        from family_scope import delivery
        return delivery
    if name == "config":
        from family_scope import config
        return config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

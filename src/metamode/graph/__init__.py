from metamode.graph.cycles import cycle_containing, find_cycles

__all__ = ["cycle_containing", "find_cycles"]

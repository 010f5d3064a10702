"""
overlaygraph: Temporal overlay reconstruction for pub/sub simulations.

Folds per-interval reports collected from simulation participants into a
single dynamic graph: node and edge lifetimes as spells, time-stamped
attributes, and hop-ordered replay of a single publication's dissemination.
Exports to GEXF for playback in Gephi.

License: MIT
"""

__version__ = "0.1.0"

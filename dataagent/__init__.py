"""
Data agent: natural-language questions answered by a graph-orchestrated
NL2SQL / analysis pipeline.
"""

__version__ = "0.1.0"

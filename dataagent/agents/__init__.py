"""
Data agent pipeline: nodes, dispatchers and the workflow topology
"""

"""
Infrastructure: worker pool, database access, knowledge store, python sandbox
"""

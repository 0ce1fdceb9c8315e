# Modal package for Fitchbox
"""
Possible-world tree and per-system accessibility relations.
"""

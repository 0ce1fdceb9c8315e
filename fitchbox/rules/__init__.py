# Rules package for Fitchbox
"""
Declarative rule catalog and the pattern matcher it runs on.
"""

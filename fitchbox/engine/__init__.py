# Engine package for Fitchbox
"""
Forward-pass proof verification and the session that publishes results.
"""

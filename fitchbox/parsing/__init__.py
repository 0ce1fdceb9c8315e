# Parsing package for Fitchbox
"""
Text front end: sentence text to AST, justification text to a rule
label plus citations.
"""

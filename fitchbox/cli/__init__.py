# CLI package for Fitchbox
"""
Command-line interface for checking proofs locally.

Commands:
    fitchbox check  — Verify a JSON proof document
    fitchbox parse  — Show how a sentence is read
    fitchbox rules  — List enabled rules
    fitchbox demo   — Verify a built-in sample proof
"""

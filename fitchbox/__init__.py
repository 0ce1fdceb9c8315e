# Fitchbox Proof Checker

"""
Checks Fitch-style natural deduction proofs line by line, for
truth-functional logic and the modal systems K, T, S4 and S5.

Every line receives a verdict; every invalid verdict names its reason.
"""

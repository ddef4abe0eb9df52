"""quiz/ -- Question bank and result ledger for QuizDesk.

Layer rule: quiz/ imports from core/ and auth/ (access decisions, the user
store for name snapshots). It does NOT import from api/.
"""

"""
Expense Assistant - Source Package

A conversational expense tracker: users describe what they spent or ask
about their spending in plain language, and a language model decides which
ledger operations to run on their behalf.

DESIGN PRINCIPLES:
1. The model requests operations; the system executes them
2. Every ledger operation is scoped to exactly one owner
3. One failed operation never takes down the whole exchange
4. Every step is auditable
5. Completion service and storage are swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Assistant Team"

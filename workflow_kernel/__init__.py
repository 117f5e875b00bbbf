"""
Workflow Kernel

Declarative workflow state machines attached to forms:
- Immutable definition model (states, transitions, notification rules)
- Structured logging and typed exceptions
- Persistence of definitions, submissions and transition history
"""

__version__ = "0.1.0"

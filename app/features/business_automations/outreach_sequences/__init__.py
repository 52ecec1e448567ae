"""
Outreach Sequences.

Drives prospects through multi-step, time-delayed outreach plans:
sequence definition, enrollment, and the polling execution engine.
"""

"""
Loyalty Module
==============

Bounded Context for the priority-loyalty rule set.

Maps a customer's cumulative spend to a support priority level and keeps
the active rules strictly ordered: a higher level always requires more
spend than every lower one.
"""

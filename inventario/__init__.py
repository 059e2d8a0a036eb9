"""Viviendas inventory domain: records, state transitions, filtering,
dashboard aggregates and the guarded state-change operation."""

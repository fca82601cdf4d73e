"""Deterministic reasoning: parsing, planning, skills, reply shaping."""

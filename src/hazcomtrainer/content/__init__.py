"""Bundled training content (industries, pictograms, modules, quizzes)."""

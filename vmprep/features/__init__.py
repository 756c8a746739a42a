"""Bundled feature units.

Each file is discovered by name order and must define a literal ``FEATURE``
metadata mapping plus ``check_prerequisites()`` and ``install(config)``.
Files starting with an underscore are not features.
"""

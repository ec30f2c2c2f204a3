"""Test package marker.

What:
  Marks ``tests`` as a package so pytest imports the shared root
  ``conftest`` under a stable name.

Invariants & Safety:
  - The file stays side-effect free.
"""

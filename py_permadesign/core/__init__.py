"""
Core terrain analysis and placement functionality.

Submodules are imported directly (``from py_permadesign.core.session import
DesignSession``); the shared PRNG helpers in ``py_permadesign.utils`` import
``core.alea_prng`` and would otherwise form an import cycle.
"""

"""
ASCII Dungeon Scripting (ADS)

Embedded Lua scripting for the editor: a sandboxed value-marshaling bridge,
the script globals, a declarative UI tree protocol and the typed node-graph
model. See DESIGN.md for how the pieces fit.
"""

__version__ = '0.1.0'

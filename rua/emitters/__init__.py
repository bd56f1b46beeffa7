"""
rua.emitters: the seam between the core and per-language generators.

  - capabilities: what a target can render and its runtime helper names
  - base: EmissionBundle, the Emitter protocol and the JSON ModelEmitter
"""

__all__ = ["capabilities", "base"]

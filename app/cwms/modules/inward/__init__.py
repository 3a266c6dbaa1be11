"""
Inward module.

- Inward entries (waste received from companies, one lot number each)
- Inward materials (transport/disposal lines recorded against an entry)
"""

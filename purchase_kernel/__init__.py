"""
Purchase Kernel

The persistence and domain core of the purchase approval workflow:
- Purchase request lifecycle state
- Append-only audit log of every transition
- Workflow configuration storage
- Conditional (compare-and-set) updates for race safety
"""

__version__ = "0.1.0"

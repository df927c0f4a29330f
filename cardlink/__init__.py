"""
CardLink - cards on a canvas, linked by drag-to-connect lines.
"""

__version__ = '0.1.0'

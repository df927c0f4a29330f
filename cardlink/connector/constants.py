"""
Shared constants for the connector subsystem.

Distances in pixels are canvas units; positions are fractions of an edge.
The canvas host passes the pixel values to its JavaScript helpers too, so
keep them in one place.
"""

# Pointer-to-endpoint distance (px) inside which a drag attaches to an endpoint
SNAP_RADIUS = 24

# Adjacent endpoints further apart than this (fraction of edge) get a midpoint
GAP_THRESHOLD = 0.15

# No new endpoint within this distance (fraction of edge) of an existing one
PROXIMITY_EPSILON = 0.1

# Two registrations closer than this (fraction of edge) are the same endpoint
REGISTRATION_TOLERANCE = 0.01

# Float slack for the inclusive proximity comparison
FLOAT_SLACK = 1e-9

# Distance (px) from a rendered line that still counts as hitting it
LINE_HIT_TOLERANCE = 6

# Radius (px) of a rendered endpoint dot
DOT_RADIUS = 6

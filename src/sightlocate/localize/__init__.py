"""
Pixel-to-world localization.

A pixel ray is resolved against bounded planes, against the sparse feature-point
cloud, or against a second observation ray; the result is then clamped and
possibly snapped onto a plane before it is handed back for rendering.
"""

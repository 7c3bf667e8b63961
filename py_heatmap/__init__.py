"""
py-heatmap: proximity heat maps of point-located businesses.

The computational core lives in ``py_heatmap.core``; configuration in
``py_heatmap.config``.
"""

__version__ = "0.1.0"

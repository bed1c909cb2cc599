"""
py-hydro: drainage networks, rivers and lakes over irregular map meshes.
"""

__version__ = "0.1.0"

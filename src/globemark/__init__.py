"""GLOBEMARK: geotagged image markers on a 3D globe.

Clusters located images, decides per frame which markers a camera over the
globe should see, and wires picks, uploads and searches to external services.
"""

__version__ = "0.1.0"

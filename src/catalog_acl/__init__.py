"""
Catalog ACL

Role based read/write access control over a geospatial catalog
(workspaces, layers, layer groups, styles).
"""

__version__ = "0.1.0"

"""Query composition, region-tree building and result stitching."""

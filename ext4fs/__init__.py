"""On-disk ext4 structures: blocks, caching, checksums, super block, group descriptors, inodes, extents, directories and extended attributes."""

__version__ = "0.1.0"
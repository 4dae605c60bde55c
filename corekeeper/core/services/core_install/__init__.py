"""
Core install — resolve, select, download, verify and install mihomo.

Layers (each only imports from the ones above it):

    errors          typed failures shared by every layer
    detection       read-only probes of the host (OS, arch, CPU level)
    domain          the ``current`` pointer capability
    resolver        registry HTTP, release resolution, asset selection
    execution       download, checksum, archive extraction
    orchestration   VersionManager ties the pipeline together
"""

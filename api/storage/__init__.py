"""
Storage module - tenant-aware access to the shared object storage bucket.

Files are laid out as {tenant_type}/{tenant_id}/{record path}/{key} and
found again through older layouts when they were stored before tenant or
record-type partitioning existed.
"""

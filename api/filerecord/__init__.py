"""
FileRecord module - metadata records for stored files.

A file record carries the opaque storage key, the tenant that owns the file
and, through its attachments, the type of the record the file belongs to.
"""

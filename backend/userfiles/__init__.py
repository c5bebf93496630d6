"""User Files API: auth, role-based user views and object-storage-backed files."""

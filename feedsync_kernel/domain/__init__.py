"""Pure domain helpers for the kernel (no I/O)."""

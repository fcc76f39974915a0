"""Auto-fix of missing declarations and lock entries."""

"""Personal task-management backend."""

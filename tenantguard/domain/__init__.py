"""Domain layer: tenant context carrier and exception taxonomy."""

"""pawmap proximity backend."""

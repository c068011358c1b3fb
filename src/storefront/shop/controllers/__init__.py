"""Shop controllers, registered by class name in ``create_app``."""

"""Pet store service used as a scanning fixture."""

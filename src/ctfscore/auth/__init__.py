"""Bearer token verification and caller resolution."""

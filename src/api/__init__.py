"""HTTP shell over the identity core."""

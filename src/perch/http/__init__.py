"""HTTP primitives: immutable request, chainable response, parameter maps."""
